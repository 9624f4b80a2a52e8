"""任务控制器：参数校验与委托。"""

from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image

from image_batch.core.config import TargetFormat, TaskParameters
from image_batch.core.exceptions import InvalidConfigurationError
from image_batch.core.signature import ImageKind, classify_file
from image_batch.processing.controller import TaskController, build_request


@pytest.mark.parametrize("source", ["", "   "])
def test_empty_source_is_rejected(source: str) -> None:
    with pytest.raises(InvalidConfigurationError):
        build_request(TaskParameters(source_dir=source))


def test_missing_source_is_rejected_without_state_change(tmp_path: Path) -> None:
    controller = TaskController()

    with pytest.raises(InvalidConfigurationError):
        controller.start(TaskParameters(source_dir=tmp_path / "missing"))

    assert not controller.is_running()
    assert controller.status() == "Finished Dirs:0, Files:0"


@pytest.mark.parametrize("max_axis", [None, 4, 32001, -1])
def test_resize_limit_out_of_range(tmp_path: Path, max_axis: int | None) -> None:
    with pytest.raises(InvalidConfigurationError):
        build_request(TaskParameters(source_dir=tmp_path, resize=True, max_axis=max_axis))


@pytest.mark.parametrize("max_axis", [5, 1024, 32000])
def test_resize_limit_bounds_are_inclusive(tmp_path: Path, max_axis: int) -> None:
    request = build_request(TaskParameters(source_dir=tmp_path, resize=True, max_axis=max_axis))

    assert request.max_axis == max_axis


def test_resize_value_ignored_when_disabled(tmp_path: Path) -> None:
    request = build_request(TaskParameters(source_dir=tmp_path, resize=False, max_axis=3))

    assert request.max_axis is None


@pytest.mark.parametrize("text", ["", "a/b", "bad:name", "..", "tab\tname"])
def test_invalid_rename_text(tmp_path: Path, text: str) -> None:
    with pytest.raises(InvalidConfigurationError):
        build_request(TaskParameters(source_dir=tmp_path, rename=True, rename_text=text))


def test_rename_text_ignored_when_disabled(tmp_path: Path) -> None:
    request = build_request(TaskParameters(source_dir=tmp_path, rename=False, rename_text="pic"))

    assert request.rename_prefix == ""
    assert not request.renames


def test_unknown_conflict_strategy(tmp_path: Path) -> None:
    with pytest.raises(InvalidConfigurationError):
        build_request(TaskParameters(source_dir=tmp_path, conflict_strategy="clobber"))


def test_controller_runs_conversion(tmp_path: Path) -> None:
    Image.new("RGB", (64, 48), "green").save(tmp_path / "a.jpg", format="JPEG")
    (tmp_path / "b.txt").write_text("not an image")
    lines: list[str] = []
    controller = TaskController(console=lines.append)

    request = controller.start(
        TaskParameters(
            source_dir=str(tmp_path),
            rename=True,
            rename_text="pic",
            target_format=TargetFormat.PNG,
            backup=False,
        )
    )
    assert controller.wait(timeout=30)

    assert request.target_format is TargetFormat.PNG
    assert controller.status() == "Finished Dirs:1, Files:2"
    assert classify_file(tmp_path / "pic.png").kind is ImageKind.PNG
    assert not (tmp_path / "a.jpg").exists()
    assert lines
    assert controller.shutdown(timeout=1)
