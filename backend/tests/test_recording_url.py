from datetime import datetime

from callsync.clients.dialer.base import clean_base_url
from callsync.clients.dialer.recording_url import (
    base_url_from_recording,
    build_url_variants,
    normalize_recording_url,
    synthesize_recording_url,
)

BASE = "http://dialer.test"


class TestCleanBaseUrl:
    def test_strips_vicidial_path(self):
        assert clean_base_url("http://dialer.test/vicidial/") == BASE
        assert clean_base_url("http://dialer.test/vicidial/admin.php") == BASE
        assert clean_base_url("http://dialer.test///") == BASE


class TestNormalizeRecordingUrl:
    def test_raw_wav_rewritten_to_mp3_folder(self):
        url, rewritten = normalize_recording_url(f"{BASE}/RECORDINGS/20250101-093015_5566-all.wav", BASE)
        assert url == f"{BASE}/RECORDINGS/MP3/20250101-093015_5566-all.mp3"
        assert rewritten is True

    def test_mp3_folder_kept(self):
        src = f"{BASE}/RECORDINGS/MP3/20250101-093015_5566-all.mp3"
        assert normalize_recording_url(src, BASE) == (src, False)

    def test_https_downgraded(self):
        url, _ = normalize_recording_url("https://dialer.test/RECORDINGS/MP3/a.mp3", BASE)
        assert url == f"{BASE}/RECORDINGS/MP3/a.mp3"

    def test_bare_filename_placed_under_recordings(self):
        url, rewritten = normalize_recording_url("20250101-093015_5566-all.wav", BASE)
        assert url == f"{BASE}/RECORDINGS/MP3/20250101-093015_5566-all.mp3"
        assert rewritten is True

    def test_empty_location(self):
        assert normalize_recording_url("", BASE) == (None, False)


class TestSynthesizeRecordingUrl:
    def test_builds_from_time_and_lead(self):
        url = synthesize_recording_url(BASE + "/", datetime(2025, 1, 1, 9, 30, 15), "5566")
        assert url == f"{BASE}/RECORDINGS/MP3/20250101-093015_5566-all.mp3"


class TestBuildUrlVariants:
    def test_wav_original_puts_mp3_twin_first(self):
        original = "https://dialer.test/RECORDINGS/a.wav"
        variants = build_url_variants(original)
        assert variants == [
            f"{BASE}/RECORDINGS/a.mp3",
            f"{BASE}/RECORDINGS/MP3/a.mp3",
            f"{BASE}/RECORDINGS/a.wav",
            f"{BASE}/RECORDINGS/MP3/a.wav",
        ]
        assert len(variants) == len(set(variants))
        assert all(v.startswith("http://") for v in variants)

    def test_reconstructed_candidates_appended(self):
        variants = build_url_variants(
            f"{BASE}/RECORDINGS/MP3/x.mp3", BASE, "5566", datetime(2025, 1, 1, 9, 30, 15)
        )
        assert variants[0] == f"{BASE}/RECORDINGS/MP3/x.mp3"
        assert variants[1] == f"{BASE}/RECORDINGS/x.mp3"
        assert variants[-4:] == [
            f"{BASE}/RECORDINGS/MP3/20250101-093015_5566-all.mp3",
            f"{BASE}/RECORDINGS/20250101-093015_5566-all.mp3",
            f"{BASE}/RECORDINGS/MP3/20250101-093015_5566-all.wav",
            f"{BASE}/RECORDINGS/20250101-093015_5566-all.wav",
        ]

    def test_no_inputs(self):
        assert build_url_variants(None) == []


def test_base_url_from_recording():
    assert base_url_from_recording(f"{BASE}/RECORDINGS/MP3/a.mp3") == BASE
    assert base_url_from_recording("http://other/a.mp3") is None
