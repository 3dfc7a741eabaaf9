"""Video job store tests - the transcode state machine."""

from pathlib import Path

import pytest

from mediaspool.storage import InvalidTransitionError, VideoStatus


@pytest.fixture
def waiting(videos, tmp_path):
    source = tmp_path / "1.mp4"
    source.write_bytes(b"video")
    return videos.create_waiting(source, 5, title="Holiday", download_id=1)


class TestCreateAndClaim:
    """Test registration and claiming of waiting videos."""

    def test_create_waiting(self, videos, waiting):
        stored = videos.get(waiting.job_id)

        assert stored.status == VideoStatus.WAITING
        assert stored.original_size == 5
        assert stored.title == "Holiday"
        assert stored.not_transcoding is False

    def test_claim_moves_to_transcoding(self, videos, waiting):
        claimed = videos.claim_next_waiting()

        assert claimed.job_id == waiting.job_id
        assert claimed.status == VideoStatus.TRANSCODING
        assert videos.get(waiting.job_id).status == VideoStatus.TRANSCODING

    def test_claim_is_exclusive(self, videos, waiting):
        assert videos.claim_next_waiting() is not None
        assert videos.claim_next_waiting() is None

    def test_claim_oldest_first(self, videos, tmp_path):
        first = videos.create_waiting(tmp_path / "a.mp4", 1)
        videos.create_waiting(tmp_path / "b.mp4", 1)

        assert videos.claim_next_waiting().job_id == first.job_id

    def test_paused_videos_are_skipped(self, videos, waiting, tmp_path):
        other = videos.create_waiting(tmp_path / "b.mp4", 1)
        videos.set_paused(waiting.job_id, True)

        assert videos.claim_next_waiting().job_id == other.job_id
        assert videos.claim_next_waiting() is None

        videos.set_paused(waiting.job_id, False)
        assert videos.claim_next_waiting().job_id == waiting.job_id

    def test_set_paused_unknown_video(self, videos):
        assert videos.set_paused(42, True) is False


class TestTransitions:
    """Test only forward transitions are accepted."""

    def test_full_lifecycle(self, videos, waiting):
        job = videos.claim_next_waiting()

        videos.transition(job, VideoStatus.FINISHED)

        assert videos.get(job.job_id).status == VideoStatus.FINISHED

    def test_error_records_message(self, videos, waiting):
        job = videos.claim_next_waiting()

        videos.transition(job, VideoStatus.ERROR, error_message="Not a valid video")

        stored = videos.get(job.job_id)
        assert stored.status == VideoStatus.ERROR
        assert stored.error_message == "Not a valid video"

    @pytest.mark.parametrize("target", [VideoStatus.FINISHED, VideoStatus.ERROR, VideoStatus.WAITING])
    def test_waiting_cannot_skip_transcoding(self, videos, waiting, target):
        with pytest.raises(InvalidTransitionError):
            videos.transition(waiting, target)

    def test_terminal_states_are_final(self, videos, waiting):
        job = videos.claim_next_waiting()
        videos.transition(job, VideoStatus.FINISHED)

        with pytest.raises(InvalidTransitionError):
            videos.transition(job, VideoStatus.ERROR)

    def test_stale_copy_is_rejected(self, videos, waiting):
        job = videos.claim_next_waiting()
        stale = videos.get(job.job_id)
        videos.transition(job, VideoStatus.ERROR, error_message="boom")

        with pytest.raises(InvalidTransitionError):
            videos.transition(stale, VideoStatus.FINISHED)
        assert videos.get(job.job_id).status == VideoStatus.ERROR


class TestUpdateItem:
    """Test artifact persistence."""

    def test_artifacts_round_trip(self, videos, waiting, tmp_path):
        job = videos.claim_next_waiting()
        job.width, job.height, job.duration = 1920, 1080, 12.5
        job.metadata = {"format": {"duration": "12.5"}}
        job.screenshots = [tmp_path / "screenshot_0.webp", tmp_path / "screenshot_1.webp"]
        job.poster = tmp_path / "poster.webp"
        job.after_path = tmp_path / "output.mp4"
        job.after_size = 1234
        videos.update_item(job)

        stored = videos.get(job.job_id)
        assert stored.screenshots == job.screenshots
        assert stored.poster == tmp_path / "poster.webp"
        assert stored.metadata == {"format": {"duration": "12.5"}}
        assert (stored.width, stored.height, stored.duration) == (1920, 1080, 12.5)
        assert stored.after_size == 1234

    def test_update_does_not_touch_status(self, videos, waiting):
        job = videos.claim_next_waiting()
        job.status = VideoStatus.FINISHED
        videos.update_item(job)

        assert videos.get(job.job_id).status == VideoStatus.TRANSCODING

    def test_clearing_original_path(self, videos, waiting):
        waiting.original_path = None
        videos.update_item(waiting)

        assert videos.get(waiting.job_id).original_path is None


class TestMaintenance:
    """Test startup recovery and statistics."""

    def test_fail_interrupted(self, videos, waiting, tmp_path):
        other = videos.create_waiting(tmp_path / "b.mp4", 1)
        videos.claim_next_waiting()

        assert videos.fail_interrupted() == 1

        stored = videos.get(waiting.job_id)
        assert stored.status == VideoStatus.ERROR
        assert stored.error_message == "Interrupted by shutdown"
        assert videos.get(other.job_id).status == VideoStatus.WAITING
        assert videos.claim_next_waiting().job_id == other.job_id

    def test_stats_and_listing(self, videos, waiting, tmp_path):
        videos.create_waiting(tmp_path / "b.mp4", 1)
        job = videos.claim_next_waiting()
        videos.transition(job, VideoStatus.FINISHED)

        assert videos.get_stats() == {"waiting": 1, "finished": 1}
        assert [v.job_id for v in videos.list_videos(VideoStatus.FINISHED)] == [job.job_id]
        assert len(videos.list_videos()) == 2
        assert isinstance(videos.list_videos()[0].original_path, Path)
