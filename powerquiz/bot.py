import discord
from discord import app_commands
from discord.ext import commands
import logging
import asyncio
from typing import List, Optional
import os
from datetime import datetime

from .best_score import BestScoreStore, JsonFileScoreBackend
from .data_manager import DataManager
from .config_manager import ConfigManager
from .quiz_controller import QuizController

logger = logging.getLogger(__name__)


class QuizBot(commands.Bot):
    """Discord bot for playing power-up quizzes"""

    def __init__(self, config=None):
        # Slash commands and buttons only need the guilds intent
        intents = discord.Intents.none()
        intents.guilds = True

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}

        self.data_manager: Optional[DataManager] = None
        self.config_manager: Optional[ConfigManager] = None
        self.quiz_controller: Optional[QuizController] = None

    async def setup_hook(self):
        """Called when the bot is starting up"""
        try:
            logger.info("Setting up bot components...")

            self.config_manager = ConfigManager()
            if self.app_config:
                await self.apply_configuration()

            self.data_manager = DataManager(
                self.config_manager.get_quiz_directory(),
                self.config_manager.get_game_config()
            )
            best_score_store = BestScoreStore(JsonFileScoreBackend(self.config_manager.get_best_score_file()))
            self.quiz_controller = QuizController(
                self.data_manager,
                self.config_manager,
                best_score_store=best_score_store
            )

            await self.load_quiz_data()
            await self.setup_commands()

            logger.info("Bot setup completed successfully")

        except Exception as e:
            logger.error(f"Error during bot setup: {e}")
            raise

    async def apply_configuration(self):
        """Apply settings from configuration file to the config manager."""
        quiz_config = self.app_config.get('quiz', {})
        quiz_directory = quiz_config.get('quiz_directory')
        if quiz_directory is not None:
            result = self.config_manager.set_quiz_directory(quiz_directory)
            if not result['success']:
                logger.warning(f"Ignoring quiz directory from config: {result['error']}")

        errors = self.config_manager.apply_settings(self.app_config.get('game', {}))
        for error in errors:
            logger.warning(f"Ignoring game setting from config: {error}")

        logger.info("Configuration applied successfully")

    async def setup_commands(self):
        """Register all slash commands"""

        @self.tree.command(name="help", description="Display available commands and how to play")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        @self.tree.command(name="quizzes", description="List the quizzes that can be played")
        async def quizzes_command(interaction: discord.Interaction):
            await self.handle_quizzes(interaction)

        @self.tree.command(name="play", description="Start a power-up quiz in this channel")
        @app_commands.describe(quiz="Quiz to play, defaults to the first available one")
        async def play_command(interaction: discord.Interaction, quiz: Optional[str] = None):
            await self.handle_play(interaction, quiz)

        @play_command.autocomplete("quiz")
        async def play_quiz_autocomplete(
            interaction: discord.Interaction, current: str
        ) -> List[app_commands.Choice[str]]:
            return [
                app_commands.Choice(name=name, value=name)
                for name in self.data_manager.get_available_quizzes()
                if current.lower() in name.lower()
            ][:25]

        @self.tree.command(name="quit", description="Quit the quiz running in this channel")
        async def quit_command(interaction: discord.Interaction):
            await self.handle_quit(interaction)

        @self.tree.command(name="status", description="Show score, lives and power-ups of the current quiz")
        async def status_command(interaction: discord.Interaction):
            await self.handle_status(interaction)

        @self.tree.command(name="best_score", description="Show the best score on record")
        async def best_score_command(interaction: discord.Interaction):
            await self.handle_best_score(interaction)

        @self.tree.command(name="set_timer", description="Set the time limit for each question (5-300 seconds)")
        async def set_timer_command(interaction: discord.Interaction, seconds: int):
            await self.handle_setting(interaction, self.config_manager.set_question_time_limit(seconds))

        @self.tree.command(name="set_lives", description="Set the number of lives for the next quiz")
        async def set_lives_command(interaction: discord.Interaction, lives: int):
            await self.handle_setting(interaction, self.config_manager.set_initial_lives(lives))

        @self.tree.command(name="set_power_up_chance", description="Set the base power-up chance (0-100%)")
        async def set_power_up_chance_command(interaction: discord.Interaction, percent: int):
            await self.handle_setting(interaction, self.config_manager.set_power_up_chance(percent))

        logger.info("Slash commands registered successfully")

    async def load_quiz_data(self):
        """Load question-set files from the quiz directory"""
        try:
            loaded_quizzes = self.data_manager.load_quiz_files()
            logger.info(f"Loaded {len(loaded_quizzes)} quiz files from {self.data_manager.quiz_directory}")
        except OSError as e:
            # Bot keeps running; /play reports that no quizzes are available
            logger.error(f"Error loading quiz data: {e}")

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")
        print(f"🤖 {self.user} is Ready and Online!")

        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
            print(f"⚡ Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")
            print(f"❌ Failed to sync slash commands: {e}")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    async def close(self):
        if self.quiz_controller is not None:
            stopped = self.quiz_controller.cancel_all()
            if stopped:
                logger.info(f"Stopped {stopped} running quizzes on shutdown")
        await super().close()

    async def handle_discord_api_error(self, error: Exception, operation: str, interaction: discord.Interaction = None) -> bool:
        """
        Handle Discord API errors with appropriate retry logic and user feedback.

        Args:
            error: The Discord API error
            operation: Description of the operation that failed
            interaction: Discord interaction object (optional)

        Returns:
            True if the operation should be retried, False otherwise
        """
        if isinstance(error, discord.HTTPException):
            if error.status == 429:
                retry_after = getattr(error, 'retry_after', 5)
                logger.warning(f"Rate limited during {operation}, waiting {retry_after}s")
                await asyncio.sleep(retry_after)
                return True

            if error.status in [500, 502, 503, 504]:
                logger.warning(f"Discord server error during {operation}: {error.status}")
                await asyncio.sleep(2)
                return True

            if error.status == 403:
                logger.error(f"Permission denied during {operation}: {error}")
                if interaction:
                    await self.send_error_response(
                        interaction,
                        "Bot doesn't have permission to perform this action. Please check bot permissions.",
                        "❌ Permission Error"
                    )
                return False

            logger.error(f"Discord API error during {operation}: {error}")
            if interaction:
                await self.send_error_response(
                    interaction,
                    "Discord API error occurred. Please try again in a moment.",
                    "❌ Discord Error"
                )
            return False

        logger.error(f"Unexpected error during {operation}: {error}")
        if interaction:
            await self.send_error_response(
                interaction,
                "An unexpected error occurred. Please try again.",
                "❌ Unexpected Error"
            )
        return False

    async def handle_help(self, interaction: discord.Interaction):
        """Handle /help command"""
        try:
            help_embed = discord.Embed(
                title="🍄 Power-Up Quiz Commands",
                description="Answer with the buttons under each question before the timer runs out.",
                color=0x00ff00
            )
            help_embed.add_field(
                name="🎮 Playing",
                value=(
                    "`/play [quiz]` - Start a quiz in this channel\n"
                    "`/quit` - Quit the current quiz\n"
                    "`/status` - Show score, lives and power-ups\n"
                    "`/quizzes` - List available quizzes\n"
                    "`/best_score` - Show the best score on record"
                ),
                inline=False
            )
            help_embed.add_field(
                name="📋 Settings",
                value=(
                    "`/set_timer <seconds>` - Time limit per question (5-300)\n"
                    "`/set_lives <lives>` - Lives at the start of a quiz\n"
                    "`/set_power_up_chance <percent>` - Base power-up chance"
                ),
                inline=False
            )
            help_embed.add_field(
                name="✨ Power-ups",
                value=(
                    "🌸 **Fire Flower** - double points for 3 correct answers\n"
                    "⭐ **Star Power** - wrong answers cost no life for 30s\n"
                    "🍄 **1UP Mushroom** - one extra life\n"
                    "🍄 **Super Mushroom** - 1.5x points for 60s"
                ),
                inline=False
            )
            help_embed.add_field(
                name="⚙️ Current Settings",
                value=f"```\n{self.config_manager.get_settings_summary()}\n```",
                inline=False
            )
            help_embed.set_footer(text="Longer streaks and harder questions raise the power-up chance")

            await interaction.response.send_message(embed=help_embed)

        except discord.HTTPException as e:
            await self.handle_discord_api_error(e, "help")

    async def handle_quizzes(self, interaction: discord.Interaction):
        """Handle /quizzes command"""
        try:
            loading_summary = self.data_manager.get_loading_summary()
            available_quizzes = loading_summary['available_quizzes']

            embed = discord.Embed(title="📚 Available Quizzes", color=0x6699ff)
            if available_quizzes:
                lines = []
                for name in available_quizzes[:20]:
                    question_set = self.data_manager.get_question_set(name)
                    lines.append(f"`{name}` - {question_set.title} ({len(question_set)} questions)")
                if len(available_quizzes) > 20:
                    lines.append(f"... and {len(available_quizzes) - 20} more")
                embed.description = "\n".join(lines)
            else:
                embed.description = "No quiz files found. Add JSON files to the quizzes directory."

            if loading_summary['sample_active']:
                embed.add_field(
                    name="ℹ️ Sample Quiz",
                    value="The quiz directory was empty, so a sample quiz was created.",
                    inline=False
                )
            if loading_summary['has_errors'] and not loading_summary['sample_active']:
                error_text = "\n".join(loading_summary['errors'][:3])
                if loading_summary['error_count'] > 3:
                    error_text += "\n... and more"
                embed.add_field(name="⚠️ Loading Errors", value=f"```\n{error_text}\n```", inline=False)

            await interaction.response.send_message(embed=embed)

        except discord.HTTPException as e:
            await self.handle_discord_api_error(e, "quizzes")

    async def handle_play(self, interaction: discord.Interaction, quiz_name: Optional[str] = None):
        """Handle /play command"""
        max_retries = 2
        for attempt in range(max_retries):
            try:
                channel_id = interaction.channel_id

                if quiz_name is None:
                    available_quizzes = self.data_manager.get_available_quizzes()
                    if not available_quizzes:
                        await self.send_error_response(
                            interaction,
                            "No quiz files found. Add JSON files to the quizzes directory.",
                            "❌ No Quizzes Available"
                        )
                        return
                    quiz_name = available_quizzes[0]

                result = self.quiz_controller.start_quiz(channel_id, quiz_name, interaction.user.id)
                if not result['success']:
                    await self.send_error_response(interaction, result['user_message'], "❌ Quiz Start Failed")
                    return

                session_info = result['session_info']
                config = self.config_manager.get_game_config()
                embed = discord.Embed(
                    title="🎯 Quiz Started!",
                    description=f"**{session_info['quiz_name']}** for {interaction.user.mention}",
                    color=0x00ff00
                )
                embed.add_field(
                    name="📊 Quiz Details",
                    value=(
                        f"Questions: {session_info['total_questions']}\n"
                        f"Lives: {session_info['lives']}\n"
                        f"Timer: {config.question_time_limit} seconds per question\n"
                        f"Power-ups: {'on' if config.power_ups_enabled else 'off'}"
                    ),
                    inline=False
                )
                embed.set_footer(text="Get ready for the first question!")
                await interaction.response.send_message(embed=embed)

                await asyncio.sleep(2)
                if not await self.quiz_controller.start_quiz_presentation(channel_id, interaction.channel):
                    await self.send_error_response(
                        interaction,
                        "Failed to present the first question. The quiz has been stopped.",
                        "❌ Presentation Error"
                    )
                return

            except discord.HTTPException as e:
                if await self.handle_discord_api_error(e, "play", interaction) and attempt < max_retries - 1:
                    self.quiz_controller.stop_quiz(interaction.channel_id)
                    continue
                return

    async def handle_quit(self, interaction: discord.Interaction):
        """Handle /quit command"""
        try:
            channel_id = interaction.channel_id
            game = self.quiz_controller.get_game(channel_id)
            if game is not None and game.owner_id != interaction.user.id:
                await self.send_error_response(
                    interaction,
                    "Only the player who started this quiz can quit it.",
                    "🚫 Not Your Quiz"
                )
                return

            result = self.quiz_controller.stop_quiz(channel_id)
            if not result['success']:
                await self.send_info_response(interaction, result['user_message'], "ℹ️ No Active Quiz")
                return

            session_info = result['session_info']
            duration = datetime.now() - session_info['start_time']
            minutes = int(duration.total_seconds() // 60)
            seconds = int(duration.total_seconds() % 60)

            embed = discord.Embed(
                title="🛑 Quiz Quit",
                description=f"**{session_info['quiz_name']}** has been ended",
                color=0xff6600
            )
            embed.add_field(
                name="📊 Progress",
                value=(
                    f"Question: {session_info['current_question']}/{session_info['total_questions']}\n"
                    f"Score: {session_info['score']} (not recorded)\n"
                    f"Duration: {minutes}m {seconds}s"
                ),
                inline=False
            )
            embed.set_footer(text="Use /play to begin a new quiz")
            await interaction.response.send_message(embed=embed)

        except discord.HTTPException as e:
            await self.handle_discord_api_error(e, "quit")

    async def handle_status(self, interaction: discord.Interaction):
        """Handle /status command"""
        try:
            progress = self.quiz_controller.get_session_progress(interaction.channel_id)
            if progress is None:
                embed = discord.Embed(
                    title="ℹ️ No Active Quiz",
                    description="No quiz is running in this channel.",
                    color=0x6699ff
                )
                embed.add_field(
                    name="⚙️ Next Quiz Settings",
                    value=f"```\n{self.config_manager.get_settings_summary()}\n```",
                    inline=False
                )
                await interaction.response.send_message(embed=embed, ephemeral=True)
                return

            embed = discord.Embed(
                title=f"📊 {progress['quiz_name']}",
                description=f"Player: <@{progress['owner_id']}>",
                color=0x00ff00
            )
            embed.add_field(
                name="Progress",
                value=f"{progress['current_question']}/{progress['total_questions']}",
                inline=True
            )
            embed.add_field(name="🏆 Score", value=str(progress['score']), inline=True)
            embed.add_field(name="❤️ Lives", value=str(progress['lives']), inline=True)
            embed.add_field(name="🔥 Streak", value=str(progress['streak']), inline=True)
            embed.add_field(
                name="✨ Power-ups",
                value="\n".join(progress['active_modifiers']) or "None",
                inline=False
            )
            await interaction.response.send_message(embed=embed, ephemeral=True)

        except discord.HTTPException as e:
            await self.handle_discord_api_error(e, "status")

    async def handle_best_score(self, interaction: discord.Interaction):
        """Handle /best_score command"""
        best_score = self.quiz_controller.get_best_score()
        if best_score > 0:
            message = f"The best score on record is **{best_score}** points."
        else:
            message = "No score has been recorded yet. Finish a quiz with `/play` to set one!"
        await self.send_info_response(interaction, message, "🏅 Best Score")

    async def handle_setting(self, interaction: discord.Interaction, result: dict):
        """Report the outcome of a settings command"""
        try:
            if not result['success']:
                await interaction.response.send_message(result['user_message'], ephemeral=True)
                return

            embed = discord.Embed(
                title="✅ Settings Updated",
                description=result['user_message'],
                color=0x00ff00
            )
            embed.add_field(
                name="⚙️ Current Settings",
                value=f"```\n{self.config_manager.get_settings_summary()}\n```",
                inline=False
            )
            embed.set_footer(text="Applies to the next quiz started")
            await interaction.response.send_message(embed=embed)

        except discord.HTTPException as e:
            await self.handle_discord_api_error(e, "settings", interaction)

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send formatted error response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=0xff0000
            )
            embed.set_footer(text="If this error persists, try using /help for available commands")

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send error response to user")

    async def send_info_response(self, interaction: discord.Interaction, message: str, title: str = "ℹ️ Information"):
        """Send formatted info response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=0x6699ff
            )

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send info response to user")


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = QuizBot(config)

    try:
        logger.info("Starting Power-Up Quiz Bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
