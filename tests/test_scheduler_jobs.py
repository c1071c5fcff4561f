from unittest.mock import MagicMock, patch

from src.scheduler.jobs import run_device_cleanup
from src.scheduler.runner import create_scheduler


class TestRunDeviceCleanup:
    @patch("src.scheduler.jobs.DeviceRegistry")
    def test_cleanup_runs(self, mock_registry_cls):
        mock_registry = MagicMock()
        mock_registry.cleanup_expired_devices.return_value = 3
        mock_registry_cls.return_value = mock_registry

        run_device_cleanup()

        mock_registry.cleanup_expired_devices.assert_called_once()

    @patch("src.scheduler.jobs.DeviceRegistry")
    def test_cleanup_error_is_logged(self, mock_registry_cls):
        mock_registry = MagicMock()
        mock_registry.cleanup_expired_devices.side_effect = RuntimeError("db locked")
        mock_registry_cls.return_value = mock_registry

        # must not raise into the scheduler thread
        run_device_cleanup()


class TestCreateScheduler:
    def test_housekeeping_job_registered(self):
        scheduler = create_scheduler()

        job_ids = [job.id for job in scheduler.get_jobs()]
        assert job_ids == ["device_cleanup"]
        assert scheduler.running is False
