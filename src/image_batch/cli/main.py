"""命令行入口。"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from image_batch.core.config import CONFLICT_STRATEGIES, TargetFormat, TaskParameters
from image_batch.core.exceptions import InvalidConfigurationError
from image_batch.core.signature import classify_file
from image_batch.processing.controller import TaskController
from image_batch.utils.logging import parse_level, setup_logging

app = typer.Typer(help="原地批量处理图片：识别类型、转换格式、限制尺寸、顺序重命名并备份原图。")

FORMAT_CHOICES = [fmt.value for fmt in TargetFormat]


def _parse_format(value: str) -> TargetFormat:
    try:
        return TargetFormat(value.strip().lower())
    except ValueError as exc:
        raise typer.BadParameter(f"格式必须是 {', '.join(FORMAT_CHOICES)} 之一") from exc


def _check_level(value: str) -> str:
    try:
        parse_level(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    return value


@app.command("run")
def run_cli(  # noqa: PLR0913
    source: Path = typer.Argument(..., help="要处理的源目录"),
    recursive: bool = typer.Option(True, "--recursive/--no-recursive", help="是否处理子目录"),
    max_axis: Optional[int] = typer.Option(None, "--max-axis", "-m", help="最长边上限（5~32000），不指定则不缩放"),
    rename: Optional[str] = typer.Option(None, "--rename", "-r", help="重命名前缀，按顺序追加序号"),
    target_format: str = typer.Option("unchanged", "--format", "-f", help="输出格式 unchanged/jpeg/png/bmp/gif"),
    backup: bool = typer.Option(True, "--backup/--no-backup", help="修改前是否备份原图"),
    conflict_strategy: str = typer.Option("rename", "--on-conflict", help="文件名冲突策略 rename/skip/overwrite"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="持久化日志文件"),
    log_level: str = typer.Option("warn", "--log-level", callback=_check_level, help="控制台日志最低级别"),
    file_log_level: str = typer.Option("info", "--file-log-level", callback=_check_level, help="日志文件最低级别"),
    poll_interval: float = typer.Option(0.1, "--poll-interval", help="状态刷新间隔（秒）"),
) -> None:
    """执行批量处理。"""

    setup_logging(log_level, log_file=log_file, file_level=file_log_level)
    logging.getLogger(__name__).debug("CLI 参数解析完成")

    if conflict_strategy not in CONFLICT_STRATEGIES:
        raise typer.BadParameter(f"冲突策略必须是 {', '.join(CONFLICT_STRATEGIES)} 之一")

    params = TaskParameters(
        source_dir=source,
        recursive=recursive,
        resize=max_axis is not None,
        max_axis=max_axis,
        rename=rename is not None,
        rename_text=rename or "",
        target_format=_parse_format(target_format),
        backup=backup,
        conflict_strategy=conflict_strategy,
    )

    console = Console()
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        TimeElapsedColumn(),
        console=console,
    )
    controller = TaskController(console=progress.log)

    try:
        controller.start(params)
    except InvalidConfigurationError as exc:
        typer.echo(f"参数错误：{exc}", err=True)
        raise typer.Exit(code=2) from exc

    try:
        with progress:
            task_id = progress.add_task(controller.status(), total=None)
            while controller.is_running():
                progress.update(task_id, description=controller.status())
                time.sleep(poll_interval)
            progress.update(task_id, description=controller.status())
    except KeyboardInterrupt:
        typer.echo("正在取消……", err=True)
        controller.stop()
    finally:
        controller.shutdown()

    snapshot = controller.snapshot()
    typer.echo(snapshot.describe())
    typer.echo(f"处理完成：修改 {snapshot.images_transformed} 张，失败 {snapshot.files_failed} 个。")
    if snapshot.fatal_error:
        typer.echo(f"任务异常终止：{snapshot.fatal_error}", err=True)
        raise typer.Exit(code=1)


@app.command("detect")
def detect_cli(
    paths: List[Path] = typer.Argument(..., help="要识别的文件"),
) -> None:
    """按文件头内容识别图片类型（与扩展名无关）。"""

    for path in paths:
        try:
            detection = classify_file(path)
        except OSError as exc:
            typer.echo(f"{path}: 无法读取 ({exc})", err=True)
            continue
        kind = detection.kind.name if detection.matched else "NONE"
        typer.echo(f"{path}: {kind}")


if __name__ == "__main__":
    app()
