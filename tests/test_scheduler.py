"""后台遍历：计数、递归、备份目录排除、取消、重启与错误边界。"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path

import pytest
from PIL import Image

import image_batch.processing.scheduler as scheduler_module
from image_batch.core.config import BACKUP_DIR_NAME, TransformRequest
from image_batch.core.models import FileOutcome, OutcomeStatus
from image_batch.processing.scheduler import WalkScheduler


def make_jpeg(path: Path, size: tuple[int, int] = (800, 600)) -> Path:
    Image.new("RGB", size, "blue").save(path, format="JPEG")
    return path


def run_to_completion(scheduler: WalkScheduler, request: TransformRequest) -> None:
    scheduler.start(request)
    assert scheduler.join(timeout=30)


class RecordingTransformer:
    """替身转换器：记录调用、可选延迟，并统计并发数。"""

    def __init__(self, delay: float = 0.0, gate: threading.Event | None = None) -> None:
        self.delay = delay
        self.gate = gate
        self.calls: list[Path] = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def transform(self, path: Path, request: TransformRequest, sequence_index: int = 0) -> FileOutcome:
        with self._lock:
            self.calls.append(path)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                self.gate.wait(timeout=10)
            if self.delay:
                time.sleep(self.delay)
            return FileOutcome(source_path=path, status=OutcomeStatus.SKIPPED)
        finally:
            with self._lock:
                self.active -= 1


def test_compliant_directory_finishes_with_counts(tmp_path: Path) -> None:
    image_path = make_jpeg(tmp_path / "a.jpg")
    (tmp_path / "b.txt").write_text("hello")
    original = image_path.read_bytes()
    scheduler = WalkScheduler()

    run_to_completion(scheduler, TransformRequest(source_dir=tmp_path, backup=False))

    status = scheduler.status()
    assert status.describe() == "Finished Dirs:1, Files:2"
    assert status.images_transformed == 0
    assert not scheduler.is_running()
    assert image_path.read_bytes() == original


def test_resize_run_creates_backup(tmp_path: Path) -> None:
    image_path = make_jpeg(tmp_path / "a.jpg")
    original = image_path.read_bytes()
    (tmp_path / "b.txt").write_text("hello")
    scheduler = WalkScheduler()

    run_to_completion(scheduler, TransformRequest(source_dir=tmp_path, max_axis=400, backup=True))

    with Image.open(image_path) as resized:
        assert resized.size == (400, 300)
    assert (tmp_path / BACKUP_DIR_NAME / "a.jpg").read_bytes() == original
    status = scheduler.status()
    assert status.describe() == "Finished Dirs:1, Files:2"
    assert status.images_transformed == 1


def test_recursion_skips_backup_directories(tmp_path: Path) -> None:
    make_jpeg(tmp_path / "a.jpg")
    sub = tmp_path / "sub"
    sub.mkdir()
    make_jpeg(sub / "b.jpg")
    backup_dir = tmp_path / BACKUP_DIR_NAME
    backup_dir.mkdir()
    kept = make_jpeg(backup_dir / "c.jpg")
    scheduler = WalkScheduler()

    run_to_completion(scheduler, TransformRequest(source_dir=tmp_path, max_axis=100, backup=True))

    assert scheduler.status().describe() == "Finished Dirs:2, Files:2"
    with Image.open(kept) as untouched:
        assert untouched.size == (800, 600)
    with Image.open(sub / "b.jpg") as resized:
        assert resized.size == (100, 75)
    assert (sub / BACKUP_DIR_NAME / "b.jpg").exists()


def test_non_recursive_run_stays_in_root(tmp_path: Path) -> None:
    make_jpeg(tmp_path / "a.jpg")
    sub = tmp_path / "sub"
    sub.mkdir()
    nested = make_jpeg(sub / "b.jpg")
    scheduler = WalkScheduler()

    run_to_completion(scheduler, TransformRequest(source_dir=tmp_path, recursive=False, max_axis=100, backup=False))

    assert scheduler.status().describe() == "Finished Dirs:1, Files:1"
    with Image.open(nested) as untouched:
        assert untouched.size == (800, 600)


def test_files_are_processed_before_subdirectories(tmp_path: Path) -> None:
    (tmp_path / "root.txt").write_text("x")
    sub = tmp_path / "sub"
    sub.mkdir()
    (sub / "nested.txt").write_text("y")
    transformer = RecordingTransformer()
    scheduler = WalkScheduler(transformer=transformer)

    run_to_completion(scheduler, TransformRequest(source_dir=tmp_path))

    assert [p.name for p in transformer.calls] == ["root.txt", "nested.txt"]


def test_sequential_rename_across_run(tmp_path: Path) -> None:
    for name in ("x.jpg", "y.jpg", "z.jpg"):
        make_jpeg(tmp_path / name, size=(20, 20))
    scheduler = WalkScheduler()

    run_to_completion(scheduler, TransformRequest(source_dir=tmp_path, rename_prefix="img", backup=False))

    assert sorted(p.name for p in tmp_path.iterdir()) == ["img.jpg", "img1.jpg", "img2.jpg"]
    assert scheduler.status().images_transformed == 3


def test_directory_error_skips_only_that_subtree(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "top.txt").write_text("x")
    locked = tmp_path / "locked"
    locked.mkdir()
    (locked / "hidden.txt").write_text("y")
    open_dir = tmp_path / "open"
    open_dir.mkdir()
    (open_dir / "visible.txt").write_text("z")

    real_list = scheduler_module.list_directory

    def guarded_list(directory: Path):
        if directory.name == "locked":
            raise PermissionError("denied")
        return real_list(directory)

    monkeypatch.setattr(scheduler_module, "list_directory", guarded_list)
    transformer = RecordingTransformer()
    scheduler = WalkScheduler(transformer=transformer)

    run_to_completion(scheduler, TransformRequest(source_dir=tmp_path))

    assert sorted(p.name for p in transformer.calls) == ["top.txt", "visible.txt"]
    status = scheduler.status()
    assert status.dirs_visited == 3
    assert status.fatal_error is None


def test_unexpected_file_error_does_not_abort_run(tmp_path: Path) -> None:
    for name in ("a.txt", "b.txt", "c.txt"):
        (tmp_path / name).write_text(name)

    class ExplodingTransformer(RecordingTransformer):
        def transform(self, path, request, sequence_index=0):
            super().transform(path, request, sequence_index)
            if path.name == "b.txt":
                raise ValueError("boom")
            return FileOutcome(source_path=path, status=OutcomeStatus.RENAMED)

    scheduler = WalkScheduler(transformer=ExplodingTransformer())

    run_to_completion(scheduler, TransformRequest(source_dir=tmp_path))

    status = scheduler.status()
    assert status.files_visited == 3
    assert status.files_failed == 1
    assert status.images_transformed == 2


def test_worker_failure_is_reported_as_fatal(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    def broken_list(_directory: Path):
        raise RuntimeError("walker bug")

    monkeypatch.setattr(scheduler_module, "list_directory", broken_list)
    scheduler = WalkScheduler(transformer=RecordingTransformer())

    with caplog.at_level(logging.CRITICAL):
        run_to_completion(scheduler, TransformRequest(source_dir=tmp_path))

    status = scheduler.status()
    assert not status.running
    assert status.fatal_error == "walker bug"
    assert any(record.levelno == logging.CRITICAL for record in caplog.records)


def test_stop_halts_counters_and_clears_running(tmp_path: Path) -> None:
    for idx in range(5):
        (tmp_path / f"f{idx}.txt").write_text(str(idx))
    gate = threading.Event()
    transformer = RecordingTransformer(gate=gate)
    scheduler = WalkScheduler(transformer=transformer)

    scheduler.start(TransformRequest(source_dir=tmp_path))
    deadline = time.monotonic() + 10
    while not transformer.calls and time.monotonic() < deadline:
        time.sleep(0.01)
    assert scheduler.is_running()
    assert scheduler.status().describe().startswith("Running ")

    scheduler.stop()
    gate.set()
    assert scheduler.join(timeout=10)

    status = scheduler.status()
    assert not status.running
    assert status.files_visited == 1
    assert len(transformer.calls) == 1
    assert status.describe() == "Finished Dirs:1, Files:1"


def test_restart_joins_previous_worker(tmp_path: Path) -> None:
    for idx in range(30):
        (tmp_path / f"f{idx}.txt").write_text(str(idx))
    transformer = RecordingTransformer(delay=0.005)
    scheduler = WalkScheduler(transformer=transformer)
    request = TransformRequest(source_dir=tmp_path)

    scheduler.start(request)
    scheduler.start(request)
    assert scheduler.join(timeout=30)

    assert transformer.max_active == 1
    assert scheduler.status().describe() == "Finished Dirs:1, Files:30"


def test_shutdown_is_safe_when_idle(tmp_path: Path) -> None:
    scheduler = WalkScheduler()

    assert scheduler.shutdown(timeout=1)
    assert scheduler.status().describe() == "Finished Dirs:0, Files:0"


def test_backup_named_root_is_not_walked(tmp_path: Path) -> None:
    root = tmp_path / BACKUP_DIR_NAME
    root.mkdir()
    (root / "a.txt").write_text("x")
    transformer = RecordingTransformer()
    scheduler = WalkScheduler(transformer=transformer)

    run_to_completion(scheduler, TransformRequest(source_dir=root))

    assert transformer.calls == []
    assert scheduler.status().describe() == "Finished Dirs:0, Files:0"


def test_symlinked_directories_are_not_followed(tmp_path: Path) -> None:
    root = tmp_path / "root"
    root.mkdir()
    (root / "own.txt").write_text("x")
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "linked.txt").write_text("y")
    try:
        (root / "link").symlink_to(outside, target_is_directory=True)
    except (OSError, NotImplementedError):
        pytest.skip("当前平台不支持目录符号链接")
    transformer = RecordingTransformer()
    scheduler = WalkScheduler(transformer=transformer)

    run_to_completion(scheduler, TransformRequest(source_dir=root))

    assert [p.name for p in transformer.calls] == ["own.txt"]
    assert scheduler.status().describe() == "Finished Dirs:1, Files:1"
