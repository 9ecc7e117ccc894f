from __future__ import annotations

from dataclasses import dataclass

from termai.agent import Agent
from termai.agent_config import AgentConfig
from termai.app import App
from termai.app_config import AppConfig
from termai.logging_config import setup_logging
from termai.mcp.mcp_manager import McpManager
from termai.system_prompt import build_coder_prompt, build_task_prompt
from termai.tool import Tool
from termai.tool_registry import get_all, task_tools
from termai.tools.agent_tool import AgentTool


@dataclass
class AppRuntime:
    app: App
    agent: Agent
    mcp_manager: McpManager | None
    builtin_tools: list
    mcp_tools: list
    log_descriptions: list[str]


def _agent_config(app: App, config: AppConfig, tools: list[Tool], system_prompt: str) -> AgentConfig:
    return AgentConfig(
        sessions=app.sessions,
        messages=app.messages,
        model=config.model,
        providers=config.providers,
        max_tokens=config.max_tokens,
        title_max_tokens=config.title_max_tokens,
        tools=tools,
        system_prompt=system_prompt,
        max_tool_result_chars=config.max_tool_result_chars,
    )


async def bootstrap_runtime(config: AppConfig) -> AppRuntime:
    app = App(config.db_path, auto_approve_permissions=config.auto_approve_permissions)

    log_descriptions = setup_logging(
        level=config.log_level,
        consumers=config.log_consumers,
        log_broker=app.logs,
    )

    working_directory = config.working_directory
    task_agent = Agent(_agent_config(
        app, config, task_tools(working_directory), build_task_prompt(working_directory),
    ))

    tools = get_all(working_directory, app.permissions, config.enable_bash)
    tools.append(AgentTool(app.sessions, task_agent))

    mcp_manager: McpManager | None = None
    mcp_tools: list = []
    if config.mcp_server_configs:
        mcp_manager = McpManager(config.mcp_server_configs)
        mcp_tools = await mcp_manager.connect_all()
        tools.extend(mcp_tools)

    agent = Agent(_agent_config(app, config, tools, build_coder_prompt(working_directory)))

    return AppRuntime(
        app=app,
        agent=agent,
        mcp_manager=mcp_manager,
        builtin_tools=[t for t in tools if t not in mcp_tools],
        mcp_tools=mcp_tools,
        log_descriptions=log_descriptions,
    )
