import subprocess
from unittest.mock import MagicMock, patch

import pytest

from cliptrail.clipboard import (
    WL_CLIPBOARD,
    XCLIP,
    XSEL,
    CommandClipboard,
    detect_backend,
    restore_entry,
)
from cliptrail.errors import ClipboardError, NoImageError


def completed(stdout=b"", returncode=0, stderr=b""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestDetectBackend:
    @patch("cliptrail.clipboard.shutil.which", return_value="/usr/bin/tool")
    def test_wayland_preferred(self, _mock_which):
        with patch.dict("os.environ", {"WAYLAND_DISPLAY": "wayland-0"}):
            assert detect_backend() is WL_CLIPBOARD

    @patch("cliptrail.clipboard.shutil.which", side_effect=lambda name: "/usr/bin/xclip" if name == "xclip" else None)
    def test_xclip_without_wayland_tools(self, _mock_which):
        with patch.dict("os.environ", {"WAYLAND_DISPLAY": "wayland-0"}):
            assert detect_backend() is XCLIP

    @patch("cliptrail.clipboard.shutil.which", side_effect=lambda name: "/usr/bin/xsel" if name == "xsel" else None)
    def test_xsel_last(self, _mock_which):
        with patch.dict("os.environ", {}, clear=True):
            assert detect_backend() is XSEL

    @patch("cliptrail.clipboard.shutil.which", return_value=None)
    def test_nothing_installed(self, _mock_which):
        with pytest.raises(ClipboardError, match="No clipboard utility"):
            detect_backend()


class TestReadText:
    @patch("cliptrail.clipboard.subprocess.run")
    def test_reads_stdout(self, mock_run):
        mock_run.return_value = completed(b"copied text")
        assert CommandClipboard(XCLIP).read_text() == "copied text"
        assert mock_run.call_args[0][0] == list(XCLIP.read_text)
        assert mock_run.call_args[1]["timeout"] == 2.0

    @patch("cliptrail.clipboard.subprocess.run")
    def test_invalid_utf8_kept_as_surrogates(self, mock_run):
        mock_run.return_value = completed(b"bad \xff")
        assert CommandClipboard(XCLIP).read_text() == "bad \udcff"

    @patch("cliptrail.clipboard.subprocess.run")
    def test_nonzero_exit(self, mock_run):
        mock_run.return_value = completed(returncode=1, stderr=b"Error: target STRING not available")
        with pytest.raises(ClipboardError, match="target STRING"):
            CommandClipboard(XCLIP).read_text()

    @patch("cliptrail.clipboard.subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="xclip", timeout=2.0))
    def test_timeout(self, _mock_run):
        with pytest.raises(ClipboardError):
            CommandClipboard(XCLIP).read_text()

    @patch("cliptrail.clipboard.subprocess.run", side_effect=FileNotFoundError("xclip"))
    def test_missing_binary(self, _mock_run):
        with pytest.raises(ClipboardError):
            CommandClipboard(XCLIP).read_text()


class TestReadImage:
    @patch("cliptrail.clipboard.subprocess.run")
    def test_first_supported_target(self, mock_run):
        mock_run.side_effect = [
            completed(b"TARGETS\ntext/plain\nimage/jpeg\nimage/png\n"),
            completed(b"jpeg-bytes"),
        ]
        data, fmt = CommandClipboard(XCLIP).read_image()
        assert (data, fmt) == (b"jpeg-bytes", "jpeg")
        assert "image/jpeg" in mock_run.call_args_list[1][0][0]

    @patch("cliptrail.clipboard.subprocess.run")
    def test_wayland_type_flag(self, mock_run):
        mock_run.side_effect = [completed(b"image/png\n"), completed(b"png-bytes")]
        CommandClipboard(WL_CLIPBOARD).read_image()
        assert mock_run.call_args_list[1][0][0] == ["wl-paste", "--type", "image/png"]

    @patch("cliptrail.clipboard.subprocess.run")
    def test_no_image_target(self, mock_run):
        mock_run.return_value = completed(b"TARGETS\nUTF8_STRING\n")
        with pytest.raises(NoImageError):
            CommandClipboard(XCLIP).read_image()

    @patch("cliptrail.clipboard.subprocess.run")
    def test_empty_image_data(self, mock_run):
        mock_run.side_effect = [completed(b"image/png\n"), completed(b"")]
        with pytest.raises(NoImageError):
            CommandClipboard(XCLIP).read_image()

    def test_xsel_has_no_images(self):
        with pytest.raises(NoImageError):
            CommandClipboard(XSEL).read_image()

    def test_no_image_is_a_clipboard_error(self):
        assert issubclass(NoImageError, ClipboardError)


class TestWrite:
    @patch("cliptrail.clipboard.subprocess.run", return_value=completed())
    def test_write_text_does_not_capture_output(self, mock_run):
        CommandClipboard(XCLIP).write_text("héllo")
        kwargs = mock_run.call_args[1]
        assert kwargs["input"] == "héllo".encode()
        assert kwargs["stdout"] is subprocess.DEVNULL
        assert kwargs["stderr"] is subprocess.DEVNULL

    @patch("cliptrail.clipboard.subprocess.run", return_value=completed())
    def test_write_image_sets_mime(self, mock_run):
        CommandClipboard(WL_CLIPBOARD).write_image(b"data", "png")
        assert mock_run.call_args[0][0] == ["wl-copy", "--type", "image/png"]

    def test_xsel_cannot_write_images(self):
        with pytest.raises(ClipboardError):
            CommandClipboard(XSEL).write_image(b"data", "png")

    @patch("cliptrail.clipboard.subprocess.run", return_value=completed(returncode=1))
    def test_write_failure(self, _mock_run):
        with pytest.raises(ClipboardError):
            CommandClipboard(XCLIP).write_text("x")


class TestRestoreEntry:
    def test_restore_text(self, store, clipboard):
        entry = store.insert_text("bring me back")
        restore_entry(clipboard, entry)
        assert clipboard.written == [("text", "bring me back")]

    def test_restore_image(self, store, clipboard, make_image):
        data = make_image(fmt="JPEG")
        entry = store.insert_image(data, "jpeg")
        restore_entry(clipboard, entry)
        assert clipboard.written == [("image", data, "jpeg")]

    def test_write_error_propagates(self, store):
        entry = store.insert_text("bring me back")
        target = MagicMock()
        target.write_text.side_effect = ClipboardError("no display")
        with pytest.raises(ClipboardError):
            restore_entry(target, entry)
