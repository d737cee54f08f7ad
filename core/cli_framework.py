"""CLI application framework for the mail and calendar CLIs.

Provides a declarative way to build CLI applications with:
- Command registration via decorators
- Automatic argument parsing
- Consistent error handling and exit codes
- Output formatting
- Common arguments (--profile, --account, --db, --verbose, --output)
- JSON-lines session logging per command run
"""
from __future__ import annotations

import argparse
import logging
import sys
import time
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
)

from .applog import AppLogger
from .cli_errors import CLIError, ExitCode, handle_error
from .cli_output import OutputConfig, OutputFormat, OutputWriter


CommandFunc = Callable[[argparse.Namespace], int]
LogPathFunc = Callable[[argparse.Namespace], str]


@dataclass
class Argument:
    """Definition of a CLI argument."""
    name_or_flags: tuple
    kwargs: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CommandDef:
    """Definition of a CLI command."""
    name: str
    func: CommandFunc
    help: str = ""
    description: str = ""
    arguments: List[Argument] = field(default_factory=list)
    aliases: List[str] = field(default_factory=list)
    parent: Optional[str] = None  # For nested commands like "tag add"

    @property
    def full_name(self) -> str:
        return f"{self.parent} {self.name}" if self.parent else self.name


class CLIApp:
    """Base class for CLI applications.

    Example usage:
        app = CLIApp("mail-cli", "Local Gmail cache")

        @app.command("ls", help="List messages")
        @app.argument("--tag", help="Only messages with this tag")
        def cmd_ls(args):
            ...
            return 0

        if __name__ == "__main__":
            app.main()
    """

    def __init__(
        self,
        name: str,
        description: str = "",
        *,
        version: Optional[str] = None,
        epilog: Optional[str] = None,
        add_common_args: bool = True,
        log_path: Optional[LogPathFunc] = None,
    ):
        """Initialize the CLI application.

        Args:
            name: Program name (used in help text).
            description: Program description.
            version: Optional version string.
            epilog: Optional text to display after help.
            add_common_args: Whether to add common args (--verbose, --output, etc.).
            log_path: Optional callable returning the session log path for parsed args.
        """
        self.name = name
        self.description = description
        self.version = version
        self.epilog = epilog
        self.add_common_args = add_common_args
        self.log_path = log_path

        self._commands: Dict[str, CommandDef] = {}
        self._groups: Dict[str, "CommandGroup"] = {}
        self._parser: Optional[argparse.ArgumentParser] = None
        self._pending_arguments: List[Argument] = []

    def command(
        self,
        name: str,
        *,
        help: str = "",
        description: str = "",
        aliases: Optional[List[str]] = None,
    ) -> Callable[[CommandFunc], CommandFunc]:
        """Decorator to register a top-level command.

        Args:
            name: Command name.
            help: Short help text for the command.
            description: Longer description for command help.
            aliases: Alternative names for the command.

        Returns:
            Decorator function.
        """
        def decorator(func: CommandFunc) -> CommandFunc:
            # Collect any pending arguments from @argument decorators
            arguments = list(reversed(self._pending_arguments))
            self._pending_arguments.clear()

            self._commands[name] = CommandDef(
                name=name,
                func=func,
                help=help,
                description=description or help,
                arguments=arguments,
                aliases=aliases or [],
            )
            return func
        return decorator

    def argument(
        self,
        *name_or_flags: str,
        **kwargs: Any,
    ) -> Callable[[CommandFunc], CommandFunc]:
        """Decorator to add an argument to the next command.

        Must be used BELOW the @command decorator (decorators apply bottom-up).
        """
        def decorator(func: CommandFunc) -> CommandFunc:
            self._pending_arguments.append(Argument(name_or_flags, kwargs))
            return func
        return decorator

    def group(
        self,
        name: str,
        *,
        help: str = "",
        description: str = "",
    ) -> "CommandGroup":
        """Create a command group for nested commands."""
        group = CommandGroup(self, name, help=help, description=description)
        self._groups[name] = group
        return group

    def build_parser(self) -> argparse.ArgumentParser:
        """Build the argument parser."""
        parser = argparse.ArgumentParser(
            prog=self.name,
            description=self.description,
            epilog=self.epilog,
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        if self.version:
            parser.add_argument(
                "--version", "-V",
                action="version",
                version=f"%(prog)s {self.version}",
            )

        if self.add_common_args:
            self._add_common_arguments(parser)

        if self._commands or self._groups:
            subparsers = parser.add_subparsers(dest="command", metavar="<command>")

            for group_name, group in self._groups.items():
                group_parser = subparsers.add_parser(
                    group_name,
                    help=group.help,
                    description=group.description,
                )
                group._build_subparsers(group_parser)

            for cmd_def in self._commands.values():
                cmd_parser = subparsers.add_parser(
                    cmd_def.name,
                    help=cmd_def.help,
                    description=cmd_def.description,
                    aliases=cmd_def.aliases,
                )
                self._add_command_arguments(cmd_parser, cmd_def)
                if self.add_common_args:
                    self._add_common_arguments(cmd_parser, nested=True)
                cmd_parser.set_defaults(_cmd_func=cmd_def.func, _cmd_name=cmd_def.full_name)

        self._parser = parser
        return parser

    def _add_common_arguments(self, parser: argparse.ArgumentParser, *, nested: bool = False) -> None:
        """Add common arguments to the parser.

        Nested (group) parsers suppress their defaults so values given before
        the group name are not reset by the subparser.
        """
        def default(value: Any) -> Any:
            return argparse.SUPPRESS if nested else value

        parser.add_argument("--profile", "-p", default=default(None), help="Credentials profile name")
        parser.add_argument("--account", "-a", default=default(None), metavar="EMAIL",
                            help="Account email to act as (required when several accounts exist)")
        parser.add_argument("--db", default=default(None), metavar="PATH",
                            help="Cache database path (default: $MAIL_DB_PATH or ~/.config/mail-cli/mail.db)")
        parser.add_argument("--verbose", "-v", action="store_true", default=default(False),
                            help="Enable verbose output")
        parser.add_argument("--quiet", "-q", action="store_true", default=default(False),
                            help="Suppress non-essential output")
        parser.add_argument(
            "--output", "-o",
            choices=["text", "json", "yaml", "table"],
            default=default("text"),
            help="Output format (default: text)",
        )

    def _add_command_arguments(
        self,
        parser: argparse.ArgumentParser,
        cmd_def: CommandDef,
    ) -> None:
        """Add command-specific arguments to the parser."""
        for arg in cmd_def.arguments:
            parser.add_argument(*arg.name_or_flags, **arg.kwargs)

    def run(self, argv: Optional[Sequence[str]] = None) -> int:
        """Run the CLI application.

        Args:
            argv: Command-line arguments (defaults to sys.argv[1:]).

        Returns:
            Exit code.
        """
        parser = self._parser or self.build_parser()
        args = parser.parse_args(argv)
        verbose = bool(getattr(args, "verbose", False))

        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.WARNING,
            format="%(levelname)s %(name)s: %(message)s",
        )

        output_config = OutputConfig(
            format=OutputFormat(getattr(args, "output", "text")),
            verbose=verbose,
            quiet=getattr(args, "quiet", False),
        )
        args._output = OutputWriter(output_config)

        cmd_func = getattr(args, "_cmd_func", None)
        if cmd_func is None:
            parser.print_help()
            return ExitCode.USAGE

        session = _Session.begin(self, args, argv)
        args._session = session
        try:
            rc = int(cmd_func(args) or 0)
        except CLIError as e:
            session.error(e.message, {"code": int(e.code), "hint": e.hint})
            session.finish("error", e.message)
            return handle_error(e, verbose=verbose)
        except KeyboardInterrupt:
            session.finish("interrupted")
            print("\nInterrupted.", file=sys.stderr)
            return ExitCode.INTERRUPTED
        except Exception as e:
            session.finish("error", f"{type(e).__name__}: {e}")
            return handle_error(e, verbose=verbose)
        session.finish("ok" if rc == 0 else "error")
        return rc

    def main(self, argv: Optional[Sequence[str]] = None) -> None:
        """Run the CLI and exit with the return code."""
        sys.exit(self.run(argv))


class _Session:
    """AppLogger session around one command run (no-op without a log path)."""

    def __init__(self, logger: Optional[AppLogger], sid: Optional[str]) -> None:
        self.logger = logger
        self.sid = sid
        self.started = time.time()

    @classmethod
    def begin(cls, app: CLIApp, args: argparse.Namespace, argv: Optional[Sequence[str]]) -> "_Session":
        if app.log_path is None:
            return cls(None, None)
        logger = AppLogger(app.log_path(args))
        cmd = f"{app.name} {getattr(args, '_cmd_name', '')}".strip()
        sid = logger.start(cmd, list(argv) if argv is not None else sys.argv[1:])
        return cls(logger, sid)

    def info(self, data: Dict[str, Any]) -> None:
        if self.logger is not None and self.sid is not None:
            self.logger.info(self.sid, data)

    def error(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        if self.logger is not None and self.sid is not None:
            self.logger.error(self.sid, message, extra)

    def finish(self, status: str, error: Optional[str] = None) -> None:
        if self.logger is None or self.sid is None:
            return
        duration_ms = int((time.time() - self.started) * 1000)
        self.logger.end(self.sid, status=status, duration_ms=duration_ms, error=error)


class CommandGroup:
    """A group of related commands (e.g., "tag" containing "ls", "add", "rm")."""

    def __init__(
        self,
        app: CLIApp,
        name: str,
        *,
        help: str = "",
        description: str = "",
    ):
        self.app = app
        self.name = name
        self.help = help
        self.description = description or help
        self._commands: Dict[str, CommandDef] = {}

    def command(
        self,
        name: str,
        *,
        help: str = "",
        description: str = "",
        aliases: Optional[List[str]] = None,
    ) -> Callable[[CommandFunc], CommandFunc]:
        """Decorator to register a command in this group."""
        def decorator(func: CommandFunc) -> CommandFunc:
            arguments = list(reversed(self.app._pending_arguments))
            self.app._pending_arguments.clear()

            self._commands[name] = CommandDef(
                name=name,
                func=func,
                help=help,
                description=description or help,
                arguments=arguments,
                aliases=aliases or [],
                parent=self.name,
            )
            return func
        return decorator

    def argument(
        self,
        *name_or_flags: str,
        **kwargs: Any,
    ) -> Callable[[CommandFunc], CommandFunc]:
        """Decorator to add an argument. Delegates to app."""
        return self.app.argument(*name_or_flags, **kwargs)

    def _build_subparsers(self, parser: argparse.ArgumentParser) -> None:
        """Build subparsers for this group's commands."""
        if self.app.add_common_args:
            self.app._add_common_arguments(parser, nested=True)

        subparsers = parser.add_subparsers(dest=f"{self.name}_cmd", metavar="<subcommand>")

        for cmd_name, cmd_def in self._commands.items():
            cmd_parser = subparsers.add_parser(
                cmd_name,
                help=cmd_def.help,
                description=cmd_def.description,
                aliases=cmd_def.aliases,
            )
            self.app._add_command_arguments(cmd_parser, cmd_def)
            if self.app.add_common_args:
                self.app._add_common_arguments(cmd_parser, nested=True)
            cmd_parser.set_defaults(_cmd_func=cmd_def.func, _cmd_name=cmd_def.full_name)
