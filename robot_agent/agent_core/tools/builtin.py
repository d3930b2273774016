from __future__ import annotations

import asyncio
import logging
import os
import shutil
import signal
import webbrowser
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

from ..schemas.domain import RiskLevel
from .base import ToolContext, ToolParameterProperty, ToolParameters, ToolResult
from .registry import ToolRegistry

logger = logging.getLogger(__name__)

ENCODINGS = ["utf-8", "utf8", "ascii", "latin-1"]

DANGEROUS_SHELL_COMMANDS = (
    "format",
    "del /s",
    "rmdir /s",
    "rd /s",
    "erase",
    "cipher",
    "diskpart",
    "bcdedit",
    "reg delete",
    "mkfs",
)


async def _kill_process_tree(process: asyncio.subprocess.Process) -> None:
    """Kill a shell started by ``shell_execute`` together with the commands it spawned."""
    if process.returncode is not None:
        return
    try:
        if os.name == "posix":
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    except ProcessLookupError:
        pass
    await process.wait()
    logger.info(f"Killed shell process {process.pid}")


def _string(description: str, **kwargs: Any) -> ToolParameterProperty:
    return ToolParameterProperty(type="string", description=description, **kwargs)


def _path_params(description: str) -> ToolParameters:
    return ToolParameters(properties={"path": _string(description)}, required=["path"])


def _resolve(raw: str, ctx: ToolContext) -> Path:
    path = Path(raw).expanduser()
    if not path.is_absolute() and ctx.working_directory:
        path = Path(ctx.working_directory) / path
    return path


def _meta(ctx: ToolContext, operation: str) -> Dict[str, Any]:
    return {"task_id": ctx.task_id, "operation": operation}


def _dry_run(message: str, **data: Any) -> ToolResult:
    return ToolResult(success=True, data={"message": message, "dry_run": True, **data})


@dataclass(frozen=True)
class FileReadTool:
    """Read a text file."""

    name: str = "file_read"
    description: str = "Read the contents of a file from the filesystem"
    risk_level: RiskLevel = RiskLevel.READ
    action: str = "file_read"
    parameters: ToolParameters = field(
        default_factory=lambda: ToolParameters(
            properties={
                "path": _string("Path of the file to read"),
                "encoding": _string("Text encoding", enum=ENCODINGS, default="utf-8"),
            },
            required=["path"],
        )
    )

    async def execute(self, params: Dict[str, Any], context: ToolContext) -> ToolResult:
        path = _resolve(params["path"], context)
        encoding = params.get("encoding") or "utf-8"
        try:
            content = await asyncio.to_thread(path.read_text, encoding=encoding)
        except (OSError, UnicodeDecodeError) as exc:
            return ToolResult(success=False, error=f"Cannot read {path}: {exc}")
        return ToolResult(
            success=True,
            data={"path": str(path), "content": content, "size": len(content.encode(encoding)), "encoding": encoding},
            metadata=_meta(context, self.name),
        )


@dataclass(frozen=True)
class FileWriteTool:
    """Write text to a file, creating it and its parent directories when missing."""

    name: str = "file_write"
    description: str = "Write content to a file, creating it if it does not exist"
    risk_level: RiskLevel = RiskLevel.MODIFY
    action: str = "file_write"
    parameters: ToolParameters = field(
        default_factory=lambda: ToolParameters(
            properties={
                "path": _string("Path of the file to write"),
                "content": _string("Content to write"),
                "encoding": _string("Text encoding", enum=ENCODINGS, default="utf-8"),
            },
            required=["path", "content"],
        )
    )

    async def execute(self, params: Dict[str, Any], context: ToolContext) -> ToolResult:
        path = _resolve(params["path"], context)
        content: str = params["content"]
        if context.dry_run:
            return _dry_run(f"Would write {len(content)} characters to {path}")

        encoding = params.get("encoding") or "utf-8"
        created = not path.exists()

        def _write() -> int:
            path.parent.mkdir(parents=True, exist_ok=True)
            return path.write_text(content, encoding=encoding)

        try:
            written = await asyncio.to_thread(_write)
        except OSError as exc:
            return ToolResult(success=False, error=f"Cannot write {path}: {exc}")
        return ToolResult(
            success=True,
            data={"path": str(path), "bytes_written": written, "created": created},
            metadata=_meta(context, self.name),
        )


@dataclass(frozen=True)
class FileDeleteTool:
    name: str = "file_delete"
    description: str = "Delete a file or directory from the filesystem"
    risk_level: RiskLevel = RiskLevel.DELETE
    action: str = "file_delete"
    parameters: ToolParameters = field(default_factory=lambda: _path_params("Path of the file or directory to delete"))

    async def execute(self, params: Dict[str, Any], context: ToolContext) -> ToolResult:
        path = _resolve(params["path"], context)
        if context.dry_run:
            return _dry_run(f"Would delete {path}")
        if not path.exists():
            return ToolResult(success=False, error=f"No such file or directory: {path}")

        is_dir = path.is_dir()
        try:
            if is_dir:
                await asyncio.to_thread(shutil.rmtree, path)
            else:
                await asyncio.to_thread(path.unlink)
        except OSError as exc:
            return ToolResult(success=False, error=f"Cannot delete {path}: {exc}")
        return ToolResult(
            success=True,
            data={"path": str(path), "was_directory": is_dir},
            metadata=_meta(context, self.name),
        )


@dataclass(frozen=True)
class FileListTool:
    name: str = "file_list"
    description: str = "List the contents of a directory"
    risk_level: RiskLevel = RiskLevel.READ
    action: str = "file_list"
    parameters: ToolParameters = field(default_factory=lambda: _path_params("Path of the directory to list"))

    async def execute(self, params: Dict[str, Any], context: ToolContext) -> ToolResult:
        path = _resolve(params["path"], context)

        def _list() -> List[Dict[str, Any]]:
            entries = []
            for child in sorted(path.iterdir()):
                stat = child.stat()
                entries.append(
                    {
                        "name": child.name,
                        "path": str(child),
                        "is_directory": child.is_dir(),
                        "size": stat.st_size,
                        "modified_at": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
                    }
                )
            return entries

        try:
            entries = await asyncio.to_thread(_list)
        except OSError as exc:
            return ToolResult(success=False, error=f"Cannot list {path}: {exc}")
        return ToolResult(success=True, data={"path": str(path), "entries": entries}, metadata=_meta(context, self.name))


@dataclass(frozen=True)
class FileMoveTool:
    name: str = "file_move"
    description: str = "Move or rename a file or directory"
    risk_level: RiskLevel = RiskLevel.MODIFY
    action: str = "file_move"
    parameters: ToolParameters = field(
        default_factory=lambda: ToolParameters(
            properties={
                "path": _string("Source path"),
                "destination": _string("Destination path"),
            },
            required=["path", "destination"],
        )
    )

    async def execute(self, params: Dict[str, Any], context: ToolContext) -> ToolResult:
        source = _resolve(params["path"], context)
        destination = _resolve(params["destination"], context)
        if context.dry_run:
            return _dry_run(f"Would move {source} to {destination}")
        try:
            moved = await asyncio.to_thread(shutil.move, str(source), str(destination))
        except OSError as exc:
            return ToolResult(success=False, error=f"Cannot move {source}: {exc}")
        return ToolResult(
            success=True,
            data={"source": str(source), "destination": str(moved)},
            metadata=_meta(context, self.name),
        )


def is_command_dangerous(command: str) -> bool:
    lowered = command.lower()
    return any(pattern in lowered for pattern in DANGEROUS_SHELL_COMMANDS)


@dataclass(frozen=True)
class ShellExecuteTool:
    """
    Run a shell command and capture its output.

    A small list of destructive commands is refused outright, independently of
    the permission evaluator. A non-zero exit code is reported as a failed
    result, not raised.
    """

    name: str = "shell_execute"
    description: str = "Execute a shell command on the system. Use with caution."
    risk_level: RiskLevel = RiskLevel.SYSTEM
    action: str = "shell"
    parameters: ToolParameters = field(
        default_factory=lambda: ToolParameters(
            properties={
                "command": _string("The command to execute"),
                "cwd": _string("Working directory for the command"),
                "timeout": ToolParameterProperty(type="number", description="Timeout in seconds", default=60),
            },
            required=["command"],
        )
    )

    async def execute(self, params: Dict[str, Any], context: ToolContext) -> ToolResult:
        command: str = params["command"]
        if is_command_dangerous(command):
            return ToolResult(
                success=False,
                error=f'Command "{command}" is flagged as potentially dangerous and requires explicit approval',
            )
        if context.dry_run:
            return _dry_run(f"Would execute: {command}")

        cwd = params.get("cwd") or context.working_directory
        timeout = float(params.get("timeout") or 60)
        loop = asyncio.get_running_loop()
        started = loop.time()
        process = await asyncio.create_subprocess_shell(
            command,
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=os.name == "posix",
        )
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.CancelledError:
            # Orchestrator timeout or shutdown.
            await _kill_process_tree(process)
            raise
        except asyncio.TimeoutError:
            await _kill_process_tree(process)
            return ToolResult(success=False, error=f"Command timed out after {timeout}s: {command}")

        code = process.returncode
        logger.debug(f"shell_execute exited with {code}: {command}")
        return ToolResult(
            success=code == 0,
            data={
                "command": command,
                "exit_code": code,
                "stdout": stdout.decode(errors="replace"),
                "stderr": stderr.decode(errors="replace"),
                "duration": loop.time() - started,
            },
            error=f"Command exited with code {code}" if code != 0 else None,
            metadata=_meta(context, self.name),
        )


@dataclass(frozen=True)
class BrowserOpenTool:
    """Open a URL in the system browser. No page automation is performed."""

    name: str = "browser_open"
    description: str = "Open a URL in the default web browser"
    risk_level: RiskLevel = RiskLevel.READ
    action: str = "browser_open"
    parameters: ToolParameters = field(
        default_factory=lambda: ToolParameters(properties={"url": _string("The URL to open")}, required=["url"])
    )

    async def execute(self, params: Dict[str, Any], context: ToolContext) -> ToolResult:
        url: str = params["url"]
        if not url.startswith(("http://", "https://")):
            return ToolResult(success=False, error=f"Only http(s) URLs can be opened: {url}")
        if context.dry_run:
            return _dry_run(f"Would open {url}")
        opened = await asyncio.to_thread(webbrowser.open, url)
        if not opened:
            return ToolResult(success=False, error=f"No browser available to open {url}")
        return ToolResult(success=True, data={"url": url}, metadata=_meta(context, self.name))


def builtin_tools() -> List[Any]:
    return [
        FileReadTool(),
        FileWriteTool(),
        FileDeleteTool(),
        FileListTool(),
        FileMoveTool(),
        ShellExecuteTool(),
        BrowserOpenTool(),
    ]


def register_builtin_tools(registry: ToolRegistry) -> ToolRegistry:
    for tool in builtin_tools():
        registry.register(tool, replace=True)
    return registry
