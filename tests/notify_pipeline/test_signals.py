"""Tests for notify_pipeline.signals module."""

import signal
from unittest.mock import MagicMock, patch

from notify_pipeline.signals import (
    remove_shutdown_signal_handlers,
    setup_shutdown_signal_handlers,
)


class TestSetupShutdownSignalHandlers:
    def test_registers_handlers_unix(self):
        callback = MagicMock()
        loop = MagicMock()

        with patch("asyncio.get_running_loop", return_value=loop):
            setup_shutdown_signal_handlers(callback)

        assert loop.add_signal_handler.call_count == 2
        calls = loop.add_signal_handler.call_args_list
        sigs = {c[0][0] for c in calls}
        assert signal.SIGTERM in sigs
        assert signal.SIGINT in sigs
        assert all(c[0][1] is callback for c in calls)

    def test_falls_back_on_windows(self):
        callback = MagicMock()
        loop = MagicMock()
        loop.add_signal_handler.side_effect = NotImplementedError

        with patch("asyncio.get_running_loop", return_value=loop), \
             patch("signal.signal") as mock_signal:
            setup_shutdown_signal_handlers(callback)

        assert mock_signal.call_count == 2
        sigs = {c[0][0] for c in mock_signal.call_args_list}
        assert signal.SIGTERM in sigs
        assert signal.SIGINT in sigs

    def test_fallback_handler_schedules_callback_on_loop(self):
        callback = MagicMock()
        loop = MagicMock()
        loop.add_signal_handler.side_effect = NotImplementedError

        with patch("asyncio.get_running_loop", return_value=loop), \
             patch("signal.signal") as mock_signal:
            setup_shutdown_signal_handlers(callback)

        handler = mock_signal.call_args_list[0][0][1]
        handler(signal.SIGTERM, None)

        loop.call_soon_threadsafe.assert_called_once_with(callback)
        callback.assert_not_called()


class TestRemoveShutdownSignalHandlers:
    def test_removes_unix_handlers(self):
        loop = MagicMock()

        with patch("asyncio.get_running_loop", return_value=loop):
            remove_shutdown_signal_handlers()

        sigs = {c[0][0] for c in loop.remove_signal_handler.call_args_list}
        assert sigs == {signal.SIGTERM, signal.SIGINT}

    def test_restores_defaults_on_windows(self):
        loop = MagicMock()
        loop.remove_signal_handler.side_effect = NotImplementedError

        with patch("asyncio.get_running_loop", return_value=loop), \
             patch("signal.signal") as mock_signal:
            remove_shutdown_signal_handlers()

        assert all(c[0][1] == signal.SIG_DFL for c in mock_signal.call_args_list)
        assert mock_signal.call_count == 2
