"""Tests for application wiring, the ASGI lifespan and the CLI."""

import asyncio
import json
import os
import signal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import yaml
from fastapi.testclient import TestClient

from backup_scheduler.config import SchedulerSettings
from backup_scheduler.enums import CLEAR_ALL_BACKUPS_TASK
from backup_scheduler.main import Application, cli, main, run_once
from backup_scheduler.scheduler.task_manager import ScheduledTaskManager


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("BACKUP_SCHEDULER_"):
            monkeypatch.delenv(key)


@pytest.fixture
def settings(config_path, data_root):
    return SchedulerSettings(config_path=str(config_path), data_root=str(data_root))


def _enable_task(config_path, cron_expression="0 3 * * *"):
    config_path.write_text(
        yaml.safe_dump(
            {
                "scheduledTasks": {
                    CLEAR_ALL_BACKUPS_TASK: {"enabled": True, "cronExpression": cron_expression}
                }
            }
        ),
        encoding="utf-8",
    )


class TestApplication:
    def test_setup_wires_components(self, settings):
        app = Application(settings)

        app.setup()

        assert app.task_manager.config_store is app.config_store
        assert app.task_manager.registry is app.registry
        assert app.task_manager.runner is app.runner
        assert app.task_manager.single_flight is True
        assert app.registry.tz == settings.tzinfo

    def test_create_fastapi_app_requires_setup(self, settings):
        with pytest.raises(RuntimeError):
            Application(settings).create_fastapi_app()

    def test_health_and_routes(self, settings):
        app = Application(settings)
        app.setup()
        client = TestClient(app.create_fastapi_app())

        assert client.get("/health").json() == {"status": "healthy"}
        assert client.get("/api/scheduled-tasks/status").json() == {
            "success": True,
            "tasks": {},
        }

    async def test_start_and_shutdown(self, settings, config_path):
        _enable_task(config_path)
        app = Application(settings)
        app.setup()

        await app.start_background_services()
        assert app.task_manager.get_status().running is True

        await app.shutdown()
        assert len(app.registry) == 0

    async def test_signal_handler_stops_timers_and_flags_server(self, settings, config_path):
        _enable_task(config_path)
        app = Application(settings)
        app.setup()
        await app.start_background_services()
        server = MagicMock()
        server.should_exit = False
        loop = asyncio.get_running_loop()

        with patch.object(loop, "add_signal_handler") as add_signal_handler:
            app.setup_signal_handlers(server)

        registered = {c.args[0]: c.args[1] for c in add_signal_handler.call_args_list}
        assert set(registered) == {signal.SIGINT, signal.SIGTERM}

        registered[signal.SIGTERM]()

        assert len(app.registry) == 0
        assert server.should_exit is True
        await app.shutdown()


class TestMain:
    async def test_stops_timers_once_server_returns(self, config_path, data_root, monkeypatch):
        _enable_task(config_path)
        monkeypatch.setenv("BACKUP_SCHEDULER_DATA_ROOT", str(data_root))
        calls = []
        real_stop_all_now = ScheduledTaskManager.stop_all_now

        def record_stop_all_now(manager):
            calls.append(("stop_all_now", len(manager.registry)))
            real_stop_all_now(manager)

        async def serve():
            calls.append(("serve", None))

        with patch("uvicorn.Config"), patch("uvicorn.Server") as server_cls, patch.object(
            Application, "setup_signal_handlers"
        ), patch.object(ScheduledTaskManager, "stop_all_now", record_stop_all_now):
            server_cls.return_value.serve = AsyncMock(side_effect=serve)

            await main(str(config_path))

        # First stop comes straight after serve() and finds the armed timer
        assert calls[:2] == [("serve", None), ("stop_all_now", 1)]


class TestRunOnce:
    async def test_cleans_and_prints_result(self, settings, data_root, write_files, capsys):
        write_files(data_root / "alice" / "backups", {"a": b"x" * 10})

        exit_code = await run_once(settings)

        assert exit_code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["usersProcessed"] == 1
        assert output["totalBytesFreed"] == 10
        assert output["perUserErrors"] == []
        assert list((data_root / "alice" / "backups").iterdir()) == []

    def test_cli_run_once(self, config_path, data_root, write_files, monkeypatch, capsys):
        write_files(data_root / "bob" / "backups", {"b": b"x" * 3})
        monkeypatch.setenv("BACKUP_SCHEDULER_DATA_ROOT", str(data_root))

        assert cli(["--config", str(config_path), "--run-once"]) == 0
        assert json.loads(capsys.readouterr().out)["totalFilesDeleted"] == 1


class TestAsgiLifespan:
    def test_lifespan_starts_and_stops_scheduler(self, config_path, data_root, monkeypatch):
        _enable_task(config_path)
        monkeypatch.setenv("BACKUP_SCHEDULER_CONFIG_PATH", str(config_path))
        monkeypatch.setenv("BACKUP_SCHEDULER_DATA_ROOT", str(data_root))
        from backup_scheduler.asgi import app

        with TestClient(app) as client:
            assert client.get("/health").status_code == 200
            status = client.get("/api/scheduled-tasks/status").json()
            assert status["tasks"][CLEAR_ALL_BACKUPS_TASK]["running"] is True
            application = app.state.application

        assert len(application.registry) == 0
