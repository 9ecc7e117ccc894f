import asyncio
import sys

from dotenv import load_dotenv
from loguru import logger

from termai.app_config import load_json_config, parse_app_config
from termai.bootstrap import AppRuntime, bootstrap_runtime
from termai.commands.router import CommandRouter
from termai.errors import RecordNotFoundError, SessionBusyError, TermaiError
from termai.memory.message_service import MessageService
from termai.models import Message, Role
from termai.permission import PermissionRequest
from termai.pubsub import EventType, Subscription
from termai.services.log_buffer import LogBuffer
from termai.services.session_controller import SessionController


class Repl:
    _LINE_PREFIX = "assistant> "
    _USER_PROMPT = "you> "

    def __init__(self, runtime: AppRuntime):
        self._runtime = runtime
        self._app = runtime.app
        self._agent = runtime.agent
        self._session_id = self._app.new_session().id
        # message id -> number of content characters already printed
        self._printed: dict[str, int] = {}
        self._session_controller = SessionController(line_prefix=self._LINE_PREFIX)
        self._log_buffer = LogBuffer()
        self._command_router = CommandRouter(
            on_help=self._on_help,
            on_session=self._handle_session_command,
            on_logs=self._handle_logs_command,
            on_unknown=self._on_unknown_command,
        )

    async def run(self) -> None:
        message_sub = self._app.messages.subscribe(capacity=256)
        permission_sub = self._app.permissions.broker.subscribe()
        log_sub = self._app.logs.subscribe(capacity=1024)
        workers = [
            asyncio.create_task(self._render_messages(message_sub), name="render-messages"),
            asyncio.create_task(self._answer_permissions(permission_sub), name="answer-permissions"),
            asyncio.create_task(self._log_buffer.consume(log_sub), name="collect-logs"),
        ]
        try:
            while True:
                try:
                    user_input = await asyncio.to_thread(input, self._USER_PROMPT)
                except (EOFError, KeyboardInterrupt):
                    break

                trimmed = user_input.strip()
                if trimmed in ("exit", "quit"):
                    break
                if not trimmed:
                    continue
                if await self._command_router.try_handle(trimmed):
                    continue

                try:
                    await self._agent.generate(self._session_id, trimmed)
                    print("\n")
                except SessionBusyError as ex:
                    print(f"{self._LINE_PREFIX}{ex}")
                except Exception as ex:
                    logger.error(f"Unhandled error: {type(ex).__name__}: {ex}")
                    print(f"\n{self._LINE_PREFIX}[error: {ex}]\n")
        finally:
            self._app.messages.unsubscribe(message_sub)
            self._app.permissions.broker.unsubscribe(permission_sub)
            self._app.logs.unsubscribe(log_sub)
            await asyncio.gather(*workers, return_exceptions=True)
            await self._agent.wait_for_background_tasks()

    async def _render_messages(self, subscription: Subscription[Message]) -> None:
        async for event in subscription:
            message = event.payload
            if event.type == EventType.DELETED:
                self._printed.pop(message.id, None)
                continue
            if message.session_id != self._session_id or message.role != Role.ASSISTANT:
                continue
            printed = self._printed.get(message.id, 0)
            new_text = message.content[printed:]
            if not new_text:
                continue
            if printed == 0:
                print(f"\n{self._LINE_PREFIX}", end="")
            print(new_text, end="", flush=True)
            self._printed[message.id] = len(message.content)

    async def _answer_permissions(self, subscription: Subscription[PermissionRequest]) -> None:
        permissions = self._app.permissions
        async for event in subscription:
            request = event.payload
            prompt = (
                f"\n[permission] {request.tool_name}: {request.description}\n"
                "Allow? [y]es / [a]lways for this session / [n]o: "
            )
            answer = (await asyncio.to_thread(input, prompt)).strip().lower()
            if answer in ("a", "always"):
                permissions.grant_persistent(request)
            elif answer in ("y", "yes"):
                permissions.grant(request)
            else:
                permissions.deny(request)

    async def _on_help(self) -> None:
        print(f"{self._LINE_PREFIX}Commands:")
        print(f"{self._LINE_PREFIX}  /help                    show this help")
        print(f"{self._LINE_PREFIX}  /session                 show the current session")
        print(f"{self._LINE_PREFIX}  /session new [title]     start a new session")
        print(f"{self._LINE_PREFIX}  /session list            list sessions")
        print(f"{self._LINE_PREFIX}  /session switch <id>     switch to another session")
        print(f"{self._LINE_PREFIX}  /session delete <id>     delete a session")
        print(f"{self._LINE_PREFIX}  /logs [n] [level]        show the last n log entries (default 20)")
        print(f"{self._LINE_PREFIX}  exit | quit              leave")
        print()

    async def _handle_session_command(self, args: list[str]) -> None:
        sessions = self._app.sessions
        controller = self._session_controller

        if not args:
            for line in controller.format_session_summary_lines(sessions.get(self._session_id)):
                print(line)
            print()
            return

        action, rest = args[0], args[1:]
        if action == "new":
            session = self._app.new_session(" ".join(rest))
            self._session_id = session.id
            print(f"{self._LINE_PREFIX}Started session {controller.short_id(session.id)}\n")
        elif action == "list":
            for session in sessions.list():
                print(controller.format_session_list_entry(session, active_session_id=self._session_id))
            print()
        elif action in ("switch", "delete") and rest:
            target = controller.resolve(sessions.list(), rest[0])
            if target is None:
                print(f"{self._LINE_PREFIX}No session matches '{rest[0]}'\n")
                return
            if action == "switch":
                self._session_id = target.id
                self._print_history(self._app.messages, target.id)
                return
            if self._agent.is_busy(target.id):
                print(f"{self._LINE_PREFIX}Session is busy; try again when it finishes\n")
                return
            try:
                self._app.delete_session(target.id)
            except RecordNotFoundError as ex:
                print(f"{self._LINE_PREFIX}{ex}\n")
                return
            print(f"{self._LINE_PREFIX}Deleted session {controller.short_id(target.id)}\n")
            if target.id == self._session_id:
                self._session_id = self._app.new_session().id
        else:
            print(f"{self._LINE_PREFIX}Usage: /session [new [title] | list | switch <id> | delete <id>]\n")

    async def _handle_logs_command(self, args: list[str]) -> None:
        count = 20
        level: str | None = None
        for arg in args:
            if arg.isdigit():
                count = int(arg)
            else:
                level = arg
        for line in self._log_buffer.format_lines(count, line_prefix=self._LINE_PREFIX, level=level):
            print(line)
        print()

    def _print_history(self, messages: MessageService, session_id: str) -> None:
        for message in messages.list(session_id):
            if message.role == Role.USER:
                print(f"{self._USER_PROMPT}{message.content}")
            elif message.role == Role.ASSISTANT and message.content:
                print(f"{self._LINE_PREFIX}{message.content}")
            self._printed[message.id] = len(message.content)
        print()

    def _on_unknown_command(self, command: str) -> None:
        print(f"{self._LINE_PREFIX}Unknown command: {command} (try /help)\n")


def _print_banner(runtime: AppRuntime) -> None:
    agent = runtime.agent
    print("termai (type 'exit' to quit, '/help' for commands)")
    print(f"Model: {agent.model.name} ({agent.model.provider})")
    print("Tools:")
    for t in runtime.builtin_tools:
        print(f"  - {t.name}")
    if runtime.mcp_tools:
        mcp_names: dict[str, list[str]] = {}
        for t in runtime.mcp_tools:
            server, _, tool_name = t.name.partition("__")
            mcp_names.setdefault(server, []).append(tool_name or t.name)
        print("MCP servers:")
        for server, tool_names in mcp_names.items():
            print(f"  - {server}: {', '.join(tool_names)}")
    if runtime.log_descriptions:
        print(f"Logging: {', '.join(runtime.log_descriptions)}")
    print()


async def main() -> None:
    load_dotenv()

    try:
        config = parse_app_config(load_json_config())
    except (TermaiError, ValueError) as ex:
        # json.JSONDecodeError is a ValueError
        logger.error(f"Invalid configuration: {ex}")
        sys.exit(1)

    try:
        runtime = await bootstrap_runtime(config)
    except TermaiError as ex:
        logger.error(f"Startup failed: {ex}")
        sys.exit(1)

    _print_banner(runtime)
    try:
        await Repl(runtime).run()
    finally:
        if runtime.mcp_manager:
            await runtime.mcp_manager.close()
        runtime.app.close()


def _install_transport_cleanup_hook() -> None:
    """Suppress 'unclosed transport' noise from asyncio subprocess cleanup on Windows.

    When MCP stdio servers shut down, asyncio's proactor transport __del__ methods
    fire after pipes are already closed, producing harmless tracebacks.
    """
    _default_hook = sys.unraisablehook

    def _hook(unraisable) -> None:
        obj_str = str(unraisable.object) if unraisable.object is not None else ""
        if "Transport" in obj_str and isinstance(unraisable.exc_value, (ResourceWarning, ValueError)):
            return
        _default_hook(unraisable)

    sys.unraisablehook = _hook


def run() -> None:
    _install_transport_cleanup_hook()
    asyncio.run(main())


if __name__ == "__main__":
    run()
