"""
Unit tests for Discord bot integration and API interactions.
"""
import unittest
import logging
from datetime import datetime
from unittest.mock import Mock, AsyncMock, patch
import discord

from powerquiz.bot import QuizBot, run_bot
from powerquiz.config_manager import ConfigManager
from tests.test_fixtures import ErrorScenarios, MockDiscordObjects, TestFixtures

CHANNEL_ID = 12345
OWNER_ID = 67890


class TestDiscordBotIntegration(unittest.IsolatedAsyncioTestCase):
    """Test Discord bot command handlers with mocked dependencies."""

    async def asyncSetUp(self):
        logging.disable(logging.CRITICAL)
        self.bot = QuizBot({'bot': {'command_prefix': '?'}})

        # Mock data manager
        self.bot.data_manager = Mock()
        self.bot.data_manager.get_available_quizzes.return_value = ["test_quiz", "sample_quiz"]
        self.bot.data_manager.get_question_set.return_value = TestFixtures.create_question_set(3)
        self.bot.data_manager.get_loading_summary.return_value = {
            'available_quizzes': ["test_quiz", "sample_quiz"],
            'has_errors': False,
            'errors': [],
            'error_count': 0,
            'sample_active': False
        }

        self.bot.config_manager = ConfigManager()

        # Mock quiz controller
        self.bot.quiz_controller = Mock()
        self.bot.quiz_controller.start_quiz.return_value = {
            'success': True,
            'message': "Quiz 'test_quiz' started successfully",
            'session_info': {
                'quiz_name': 'test_quiz',
                'total_questions': 3,
                'lives': 3,
            }
        }
        self.bot.quiz_controller.start_quiz_presentation = AsyncMock(return_value=True)
        self.bot.quiz_controller.get_game.return_value = None
        self.bot.quiz_controller.stop_quiz.return_value = {
            'success': True,
            'message': "Quiz stopped successfully",
            'session_info': {
                'quiz_name': 'test_quiz',
                'current_question': 2,
                'total_questions': 3,
                'score': 300,
                'start_time': datetime.now()
            }
        }
        self.bot.quiz_controller.get_session_progress.return_value = None
        self.bot.quiz_controller.get_best_score.return_value = 0

        self.interaction = MockDiscordObjects.create_mock_interaction(CHANNEL_ID, OWNER_ID)

    async def asyncTearDown(self):
        logging.disable(logging.NOTSET)

    def sent_embed(self):
        return self.interaction.response.send_message.call_args.kwargs['embed']

    async def test_command_prefix_from_config(self):
        self.assertEqual(self.bot.command_prefix, '?')
        self.assertEqual(QuizBot().command_prefix, '!')

    async def test_help_command_success(self):
        await self.bot.handle_help(self.interaction)

        embed = self.sent_embed()
        self.assertEqual(embed.title, "🍄 Power-Up Quiz Commands")
        field_names = [field.name for field in embed.fields]
        self.assertIn("✨ Power-ups", field_names)
        self.assertIn("Timer: 30 seconds", embed.fields[-1].value)

    async def test_help_command_with_discord_error(self):
        self.interaction.response.send_message.side_effect = ErrorScenarios.create_http_exception(403)
        # 403 is not retried and must not raise out of the handler
        await self.bot.handle_help(self.interaction)
        self.interaction.response.send_message.assert_awaited_once()

    async def test_quizzes_command_lists_titles(self):
        await self.bot.handle_quizzes(self.interaction)

        embed = self.sent_embed()
        self.assertIn("`test_quiz` - Test Quiz (3 questions)", embed.description)

    async def test_quizzes_command_reports_sample(self):
        self.bot.data_manager.get_loading_summary.return_value = {
            'available_quizzes': ["sample_quiz"],
            'has_errors': False,
            'errors': [],
            'error_count': 0,
            'sample_active': True
        }
        await self.bot.handle_quizzes(self.interaction)
        self.assertEqual(self.sent_embed().fields[0].name, "ℹ️ Sample Quiz")

    async def test_play_command_success(self):
        with patch('powerquiz.bot.asyncio.sleep', new=AsyncMock()):
            await self.bot.handle_play(self.interaction, "test_quiz")

        self.bot.quiz_controller.start_quiz.assert_called_once_with(CHANNEL_ID, "test_quiz", OWNER_ID)
        self.bot.quiz_controller.start_quiz_presentation.assert_awaited_once_with(
            CHANNEL_ID, self.interaction.channel
        )
        self.assertEqual(self.sent_embed().title, "🎯 Quiz Started!")

    async def test_play_command_defaults_to_first_quiz(self):
        with patch('powerquiz.bot.asyncio.sleep', new=AsyncMock()):
            await self.bot.handle_play(self.interaction)

        self.bot.quiz_controller.start_quiz.assert_called_once_with(CHANNEL_ID, "test_quiz", OWNER_ID)

    async def test_play_command_no_quizzes_available(self):
        self.bot.data_manager.get_available_quizzes.return_value = []
        await self.bot.handle_play(self.interaction)

        self.bot.quiz_controller.start_quiz.assert_not_called()
        self.assertEqual(self.sent_embed().title, "❌ No Quizzes Available")

    async def test_play_command_start_failure(self):
        self.bot.quiz_controller.start_quiz.return_value = {
            'success': False,
            'error': "conflict",
            'user_message': "❌ A quiz is already running in this channel."
        }
        await self.bot.handle_play(self.interaction, "test_quiz")

        embed = self.sent_embed()
        self.assertEqual(embed.title, "❌ Quiz Start Failed")
        self.bot.quiz_controller.start_quiz_presentation.assert_not_awaited()

    async def test_play_command_presentation_failure(self):
        self.bot.quiz_controller.start_quiz_presentation.return_value = False
        self.interaction.response.is_done.return_value = True
        with patch('powerquiz.bot.asyncio.sleep', new=AsyncMock()):
            await self.bot.handle_play(self.interaction, "test_quiz")

        embed = self.interaction.followup.send.call_args.kwargs['embed']
        self.assertEqual(embed.title, "❌ Presentation Error")

    async def test_quit_command_success(self):
        await self.bot.handle_quit(self.interaction)

        self.bot.quiz_controller.stop_quiz.assert_called_once_with(CHANNEL_ID)
        embed = self.sent_embed()
        self.assertEqual(embed.title, "🛑 Quiz Quit")
        self.assertIn("Score: 300 (not recorded)", embed.fields[0].value)

    async def test_quit_command_from_other_user(self):
        self.bot.quiz_controller.get_game.return_value = Mock(owner_id=99999)
        await self.bot.handle_quit(self.interaction)

        self.bot.quiz_controller.stop_quiz.assert_not_called()
        self.assertEqual(self.sent_embed().title, "🚫 Not Your Quiz")

    async def test_quit_command_without_game(self):
        self.bot.quiz_controller.stop_quiz.return_value = {
            'success': False,
            'message': "No active quiz to stop in this channel",
            'user_message': "ℹ️ No active quiz found in this channel"
        }
        await self.bot.handle_quit(self.interaction)
        self.assertEqual(self.sent_embed().title, "ℹ️ No Active Quiz")

    async def test_status_command_without_game(self):
        await self.bot.handle_status(self.interaction)

        self.assertEqual(self.sent_embed().title, "ℹ️ No Active Quiz")
        self.assertTrue(self.interaction.response.send_message.call_args.kwargs['ephemeral'])

    async def test_status_command_with_game(self):
        self.bot.quiz_controller.get_session_progress.return_value = {
            'quiz_name': 'test_quiz',
            'owner_id': OWNER_ID,
            'current_question': 2,
            'total_questions': 3,
            'score': 300,
            'lives': 2,
            'time_remaining': 12,
            'streak': 1,
            'active_modifiers': ["⭐ Star Power (12s left)"],
            'terminal': 'none',
            'start_time': datetime.now()
        }
        await self.bot.handle_status(self.interaction)

        fields = {field.name: field.value for field in self.sent_embed().fields}
        self.assertEqual(fields["Progress"], "2/3")
        self.assertEqual(fields["✨ Power-ups"], "⭐ Star Power (12s left)")

    async def test_best_score_command(self):
        await self.bot.handle_best_score(self.interaction)
        self.assertIn("No score has been recorded yet", self.sent_embed().description)

        self.bot.quiz_controller.get_best_score.return_value = 1500
        await self.bot.handle_best_score(self.interaction)
        self.assertIn("**1500**", self.sent_embed().description)

    async def test_setting_command_success(self):
        result = self.bot.config_manager.set_question_time_limit(45)
        await self.bot.handle_setting(self.interaction, result)

        embed = self.sent_embed()
        self.assertEqual(embed.title, "✅ Settings Updated")
        self.assertIn("Timer: 45 seconds", embed.fields[0].value)

    async def test_setting_command_validation_error(self):
        result = self.bot.config_manager.set_initial_lives(0)
        await self.bot.handle_setting(self.interaction, result)

        args, kwargs = self.interaction.response.send_message.call_args
        self.assertEqual(args[0], result['user_message'])
        self.assertTrue(kwargs['ephemeral'])
        self.assertEqual(self.bot.config_manager.get_initial_lives(), 3)

    async def test_discord_api_error_handling(self):
        with patch('powerquiz.bot.asyncio.sleep', new=AsyncMock()) as mock_sleep:
            self.assertTrue(await self.bot.handle_discord_api_error(
                ErrorScenarios.create_http_exception(503), "test"
            ))
            mock_sleep.assert_awaited_once_with(2)

        self.assertFalse(await self.bot.handle_discord_api_error(
            ErrorScenarios.create_http_exception(403), "test", self.interaction
        ))
        self.assertEqual(self.sent_embed().title, "❌ Permission Error")

        self.assertFalse(await self.bot.handle_discord_api_error(RuntimeError("boom"), "test"))

    async def test_error_response_fallback(self):
        self.interaction.response.send_message.side_effect = ErrorScenarios.create_http_exception(500)
        # failures while reporting an error are logged, not raised
        await self.bot.send_error_response(self.interaction, "Something broke")

    async def test_apply_configuration(self):
        self.bot.app_config = {
            'game': {'question_time_limit': 20, 'initial_lives': 9, 'power_up_chance': 40},
            'quiz': {'quiz_directory': '/etc/quizzes'}
        }
        await self.bot.apply_configuration()

        config = self.bot.config_manager.get_game_config()
        self.assertEqual(config.question_time_limit, 20)
        self.assertEqual(config.initial_lives, 3)
        self.assertEqual(config.power_up_chance, 40)
        self.assertEqual(self.bot.config_manager.get_quiz_directory(), "./quizzes/")

    async def test_close_cancels_running_games(self):
        self.bot.quiz_controller.cancel_all.return_value = 1
        with patch('discord.ext.commands.Bot.close', new=AsyncMock()) as mock_close:
            await self.bot.close()
        self.bot.quiz_controller.cancel_all.assert_called_once()
        mock_close.assert_awaited_once()


class TestRunBot(unittest.IsolatedAsyncioTestCase):
    """Test cases for the bot entry point."""

    async def test_run_without_token(self):
        with patch.dict('os.environ', {}, clear=True):
            with patch('powerquiz.bot.QuizBot') as mock_bot_class:
                with self.assertLogs('powerquiz.bot', level='ERROR'):
                    await run_bot(None, {})
        mock_bot_class.assert_not_called()

    async def test_run_with_invalid_token(self):
        with patch('powerquiz.bot.QuizBot') as mock_bot_class:
            bot = mock_bot_class.return_value
            bot.start = AsyncMock(side_effect=discord.LoginFailure("bad token"))
            bot.is_closed.return_value = False
            bot.close = AsyncMock()
            with self.assertLogs('powerquiz.bot', level='ERROR') as captured:
                await run_bot("token", {})

        self.assertIn("Invalid bot token", captured.output[0])
        bot.close.assert_awaited_once()


if __name__ == '__main__':
    unittest.main()
