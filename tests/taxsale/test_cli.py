"""
Tests for the command-line entry point
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.taxsale import cli
from src.taxsale.collectors.errors import CollectorConfigurationError
from src.taxsale.collectors.st_marys import StMarysCountyCollector
from src.taxsale.models.collection import CollectionResult
from src.taxsale.models.source import ScheduleFrequency


class TestParseArgs:
    """Tests for parse_args"""

    def test_run(self):
        args = cli.parse_args(["run", "stmarys-county-collector", "--source", "stmarys-md"])

        assert args.command == "run"
        assert args.collector == "stmarys-county-collector"
        assert args.source == "stmarys-md"

    def test_parallel(self):
        args = cli.parse_args(["parallel", "--sources", "a", "b", "--concurrency", "2"])

        assert args.sources == ["a", "b"]
        assert args.concurrency == 2

    def test_health_defaults(self):
        args = cli.parse_args(["health"])
        assert args.lookback_hours is None

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.parse_args([])


class TestDefaultSources:
    """Tests for default_sources"""

    def test_stmarys_source_is_valid_for_its_collector(self):
        source = cli.default_sources()[0]

        assert source.collector_type == StMarysCountyCollector.collector_id
        assert source.schedule.frequency == ScheduleFrequency.WEEKLY
        assert StMarysCountyCollector(session=MagicMock()).validate_source(source).valid


class TestMain:
    """Tests for main"""

    def test_run_success(self, capsys):
        manager = AsyncMock()
        manager.run_collection.return_value = CollectionResult(
            source_id="stmarys-md", collector_name="stmarys-county-collector", success=True
        )

        with patch.object(cli, "build_manager", return_value=manager):
            code = cli.main(["run", "stmarys-county-collector"])

        assert code == 0
        manager.run_collection.assert_awaited_once_with("stmarys-county-collector", source_id=None)
        assert '"collectorName": "stmarys-county-collector"' in capsys.readouterr().out

    def test_connections_closed_after_run(self):
        manager = AsyncMock()
        manager.run_collection.return_value = CollectionResult(collector_name="x", success=False)

        with patch.object(cli, "build_manager", return_value=manager), \
                patch.object(cli, "close_connections") as close:
            assert cli.main(["run", "x"]) == 1

        close.assert_called_once_with()

    def test_configuration_error_exit_code(self):
        manager = AsyncMock()
        manager.run_collection.side_effect = CollectorConfigurationError("Collector not found: x")

        with patch.object(cli, "build_manager", return_value=manager):
            assert cli.main(["run", "x"]) == 2
