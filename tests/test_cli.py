"""CLI tests - commands run against a temporary database."""

from unittest.mock import Mock, patch

import pytest
from click.testing import CliRunner

from mediaspool.cli import cli
from mediaspool.storage import Database, DownloadStore, SettingsStore, VideoStore


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def use_config(config):
    with patch("mediaspool.cli.load_config", return_value=config):
        yield


@pytest.fixture
def store_db(config):
    config.ensure_directories()
    return Database(config.database_path)


class TestCLIBasics:
    """Test essential CLI functionality."""

    def test_help(self, cli_runner):
        result = cli_runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "mediaspool" in result.output.lower()

    def test_config_show(self, cli_runner):
        result = cli_runner.invoke(cli, ["config", "show"])

        assert result.exit_code == 0
        assert "Download Directory" in result.output
        assert "Not configured" in result.output

    def test_config_init(self, cli_runner, tmp_path):
        path = tmp_path / "conf" / "config.toml"

        result = cli_runner.invoke(cli, ["config", "init", "--path", str(path)])

        assert result.exit_code == 0
        assert path.exists()

    @patch("mediaspool.cli.check_dependencies", return_value=[])
    def test_config_validate(self, mock_deps, cli_runner):
        result = cli_runner.invoke(cli, ["config", "validate"])

        assert result.exit_code == 0
        assert "Configuration is valid" in result.output

    def test_bad_config_file(self, cli_runner, tmp_path):
        bad = tmp_path / "bad.toml"
        bad.write_text("max_concurrent_downloads = 0\n")

        with patch("mediaspool.cli.load_config", side_effect=ValueError("invalid")):
            result = cli_runner.invoke(cli, ["-c", str(bad), "config", "show"])

        assert result.exit_code == 1
        assert "Configuration Error" in result.output


class TestDownloadCommands:
    """Test download queue commands."""

    def test_add_and_list(self, cli_runner, store_db):
        result = cli_runner.invoke(
            cli, ["download", "add", "https://example.com/v.mp4", "--title", "Holiday"],
        )
        assert result.exit_code == 0
        assert "Queued download 1" in result.output

        result = cli_runner.invoke(cli, ["download", "list", "--search", "holi"])
        assert result.exit_code == 0
        assert "Holiday" in result.output
        assert "Showing 1 of 1" in result.output

    def test_add_rejects_bad_url(self, cli_runner, store_db):
        result = cli_runner.invoke(cli, ["download", "add", "ftp://x", "--title", "Holiday"])

        assert result.exit_code == 1
        assert DownloadStore(store_db).get_stats() == {}

    def test_list_bad_sort(self, cli_runner, store_db):
        result = cli_runner.invoke(cli, ["download", "list", "--sort", "bogus"])

        assert result.exit_code == 1

    def test_remove(self, cli_runner, store_db):
        job = DownloadStore(store_db).add_download("Holiday", "https://example.com/v.mp4")

        result = cli_runner.invoke(cli, ["download", "remove", str(job.job_id)])

        assert result.exit_code == 0
        assert DownloadStore(store_db).get(job.job_id) is None

    def test_remove_unknown(self, cli_runner, store_db):
        assert cli_runner.invoke(cli, ["download", "remove", "99"]).exit_code == 1


class TestVideoCommands:
    """Test video commands."""

    def test_pause_and_resume(self, cli_runner, store_db, tmp_path):
        video = VideoStore(store_db).create_waiting(tmp_path / "1.mp4", 10, title="Holiday")

        result = cli_runner.invoke(cli, ["video", "pause", str(video.job_id)])
        assert result.exit_code == 0
        assert VideoStore(store_db).get(video.job_id).not_transcoding is True

        result = cli_runner.invoke(cli, ["video", "resume", str(video.job_id)])
        assert result.exit_code == 0
        assert VideoStore(store_db).get(video.job_id).not_transcoding is False

    def test_pause_unknown(self, cli_runner, store_db):
        assert cli_runner.invoke(cli, ["video", "pause", "5"]).exit_code == 1

    def test_list(self, cli_runner, store_db, tmp_path):
        VideoStore(store_db).create_waiting(tmp_path / "1.mp4", 2048, title="Holiday")

        result = cli_runner.invoke(cli, ["video", "list", "--status", "waiting"])

        assert result.exit_code == 0
        assert "Holiday" in result.output
        assert "2.0 KB" in result.output


class TestSettingsAndSubscriptions:
    """Test settings and subscription commands."""

    def test_settings_load_and_show(self, cli_runner, store_db, tmp_path):
        path = tmp_path / "settings.toml"
        path.write_text('[transcode]\nresolution = "1080p"\nbitrate = 4500\n')

        result = cli_runner.invoke(cli, ["settings", "load", str(path)])
        assert result.exit_code == 0
        assert SettingsStore(store_db).load().bitrate == 4500

        result = cli_runner.invoke(cli, ["settings", "show"])
        assert "4500" in result.output

    def test_settings_load_invalid(self, cli_runner, store_db, tmp_path):
        path = tmp_path / "settings.toml"
        path.write_text('[transcode]\nresolution = "8K"\n')

        result = cli_runner.invoke(cli, ["settings", "load", str(path)])

        assert result.exit_code == 1
        assert SettingsStore(store_db).load().resolution.value == "720p"

    def test_subscribe(self, cli_runner, store_db, tmp_path):
        video = VideoStore(store_db).create_waiting(tmp_path / "1.mp4", 10)

        result = cli_runner.invoke(
            cli, ["subscribe", str(video.job_id), "100123", "--reply-to", "4"],
        )

        assert result.exit_code == 0, result.output
        assert "subscribed" in result.output

    def test_subscribe_unknown_video(self, cli_runner, store_db):
        assert cli_runner.invoke(cli, ["subscribe", "9", "100"]).exit_code == 1


class TestProcessCommands:
    """Test start, stop and status."""

    @patch("mediaspool.cli.check_dependencies", return_value=[])
    @patch("mediaspool.cli.ProcessLock")
    def test_status(self, mock_lock, mock_deps, cli_runner, store_db):
        mock_lock.find_mediaspool_process.return_value = None
        DownloadStore(store_db).add_download("Holiday", "https://example.com/v.mp4")

        result = cli_runner.invoke(cli, ["status"])

        assert result.exit_code == 0
        assert "Not running" in result.output
        assert "Pending" in result.output

    @patch("mediaspool.cli.ProcessLock")
    def test_stop_when_not_running(self, mock_lock, cli_runner):
        mock_lock.find_mediaspool_process.return_value = None

        result = cli_runner.invoke(cli, ["stop"])

        assert result.exit_code == 0
        assert "not running" in result.output

    @patch("mediaspool.cli.ProcessLock")
    def test_stop_running(self, mock_lock, cli_runner):
        mock_lock.find_mediaspool_process.return_value = (4321, "daemon")
        mock_lock.stop_process.return_value = True

        result = cli_runner.invoke(cli, ["stop"])

        assert result.exit_code == 0
        mock_lock.stop_process.assert_called_once_with(4321)

    @patch("mediaspool.cli.check_dependencies", return_value=[])
    @patch("mediaspool.cli.MediaSpoolDaemon")
    def test_start_systemd(self, mock_daemon_class, mock_deps, cli_runner):
        result = cli_runner.invoke(cli, ["start", "--systemd"])

        assert result.exit_code == 0
        mock_daemon_class.return_value.start_systemd_mode.assert_called_once()

    @patch("mediaspool.cli.check_dependencies", return_value=[])
    @patch("mediaspool.cli.MediaSpoolDaemon")
    def test_start_daemon(self, mock_daemon_class, mock_deps, cli_runner, monkeypatch):
        monkeypatch.delenv("INVOCATION_ID", raising=False)

        result = cli_runner.invoke(cli, ["start"])

        assert result.exit_code == 0
        mock_daemon_class.return_value.start_daemon.assert_called_once()

    @patch("mediaspool.cli.MediaSpoolDaemon")
    def test_start_without_ffmpeg(self, mock_daemon_class, cli_runner):
        with patch("mediaspool.cli.check_dependencies") as mock_deps:
            mock_deps.return_value = [Mock(display_to_user=Mock())]
            result = cli_runner.invoke(cli, ["start"])

        assert result.exit_code == 1
        mock_daemon_class.assert_not_called()
