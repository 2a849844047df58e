"""
Tool executors behind the ToolBridge.

* LocalToolExecutor - in-process cart/favorites tools, used for local runs and tests.
* McpToolExecutor   - an ecommerce MCP server spoken to over stdio.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shlex
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Type

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .data_fetchers import StoreError
from .data_fetchers.cart import CartStore
from .data_fetchers.favorites import FavoritesStore
from .errors import ToolExecutionError
from .models import ToolCallResult, ToolDefinition

log = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────
# Argument schemas
# ────────────────────────────────────────────────────────────

class UserArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    userId: str = Field(..., min_length=1, description="The unique identifier of the user (session ID)")


class UserSkuArgs(UserArgs):
    sku: str = Field(..., min_length=1, description='The SKU code of the product (e.g. "SKU-IP15", "SKU-S24")')


class AddToCartArgs(UserSkuArgs):
    quantity: int = Field(1, gt=0, description="Number of items to add (default: 1)")


class UpdateCartItemArgs(UserSkuArgs):
    quantity: int = Field(..., ge=0, description="New quantity; 0 removes the item from the cart")


@dataclass(frozen=True)
class LocalTool:
    name: str
    description: str
    args_model: Type[BaseModel]
    handler: Callable[[BaseModel], Any]

    def definition(self) -> ToolDefinition:
        schema = self.args_model.model_json_schema()
        schema.pop("title", None)
        return ToolDefinition(name=self.name, description=self.description, argument_schema=schema)


class LocalToolExecutor:
    def __init__(self, cart: Optional[CartStore] = None, favorites: Optional[FavoritesStore] = None):
        self.cart = cart or CartStore()
        self.favorites = favorites or FavoritesStore()
        self._tools: Dict[str, LocalTool] = {t.name: t for t in self._build_tools()}

    def _build_tools(self) -> List[LocalTool]:
        cart, favs = self.cart, self.favorites
        return [
            LocalTool(
                "ecommerce_get_cart",
                "Get a user's shopping cart contents with line subtotals and total price.",
                UserArgs,
                lambda a: cart.get_cart(a.userId),
            ),
            LocalTool(
                "ecommerce_add_to_cart",
                "Add a product to the user's shopping cart. If the product is already in the cart, its quantity is increased.",
                AddToCartArgs,
                lambda a: cart.add_to_cart(a.userId, a.sku, a.quantity),
            ),
            LocalTool(
                "ecommerce_update_cart_item",
                "Set the quantity of a product already in the user's cart. Quantity 0 removes it.",
                UpdateCartItemArgs,
                lambda a: cart.update_quantity(a.userId, a.sku, a.quantity),
            ),
            LocalTool(
                "ecommerce_remove_from_cart",
                "Remove a product from the user's shopping cart entirely.",
                UserSkuArgs,
                lambda a: cart.remove_from_cart(a.userId, a.sku),
            ),
            LocalTool(
                "ecommerce_clear_cart",
                "Remove all products from the user's shopping cart at once.",
                UserArgs,
                lambda a: cart.clear_cart(a.userId),
            ),
            LocalTool(
                "ecommerce_get_favorites",
                "Get a user's favorite products list.",
                UserArgs,
                lambda a: {"favorites": favs.get_favorites(a.userId)},
            ),
            LocalTool(
                "ecommerce_add_to_favorites",
                "Add a product to the user's favorites list.",
                UserSkuArgs,
                lambda a: {"product": favs.add_favorite(a.userId, a.sku)},
            ),
            LocalTool(
                "ecommerce_remove_from_favorites",
                "Remove a product from the user's favorites list.",
                UserSkuArgs,
                lambda a: {"product": favs.remove_favorite(a.userId, a.sku)},
            ),
        ]

    async def list_tools(self) -> List[ToolDefinition]:
        return [t.definition() for t in self._tools.values()]

    async def call_tool(self, name: str, args: Dict[str, Any]) -> ToolCallResult:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolExecutionError(name, f"Unknown tool: {name}")
        try:
            parsed = tool.args_model.model_validate(args or {})
        except ValidationError as e:
            problems = "; ".join(f"{'.'.join(map(str, err['loc'])) or 'args'}: {err['msg']}" for err in e.errors())
            raise ToolExecutionError(name, f"Invalid arguments: {problems}") from e
        try:
            data = tool.handler(parsed)
        except StoreError as e:
            raise ToolExecutionError(name, f"{e.message} ({e.code})") from e
        return ToolCallResult(texts=(json.dumps(data, ensure_ascii=False, indent=2),))


# ────────────────────────────────────────────────────────────
# MCP over stdio
# ────────────────────────────────────────────────────────────

class McpToolExecutor:
    """
    Talks to an MCP server over stdio through one long-lived session.

    The server is spawned on first use. A runner task owns the
    ``stdio_client``/``ClientSession`` contexts, since both must be entered
    and exited in the same task. Concurrent first callers share one
    connection attempt. A failed call drops the session so the next call
    reconnects.
    """

    def __init__(self, command: str, args: Optional[List[str]] = None, env: Optional[Dict[str, str]] = None):
        self.command = command
        self.args = args or []
        self.full_env = os.environ.copy()
        if env:
            self.full_env.update(env)
        self._session: Optional[ClientSession] = None
        self._connecting: Optional[asyncio.Future] = None
        self._runner: Optional[asyncio.Task] = None
        self._stop: Optional[asyncio.Event] = None

    @classmethod
    def from_config(cls, cfg) -> "McpToolExecutor":
        return cls(cfg.MCP_SERVER_COMMAND, shlex.split(cfg.MCP_SERVER_ARGS or ""))

    def _server_params(self) -> StdioServerParameters:
        return StdioServerParameters(command=self.command, args=self.args, env=self.full_env)

    # ────────────────────────────────────────────────────────
    # Connection lifecycle
    # ────────────────────────────────────────────────────────

    async def _hold_session(self, ready: asyncio.Future) -> None:
        try:
            async with stdio_client(self._server_params()) as (read, write):
                async with ClientSession(read, write) as session:
                    await session.initialize()
                    self._session = session
                    log.info(f"MCP_CONNECTED | command={self.command} | args={self.args}")
                    ready.set_result(session)
                    await self._stop.wait()
        except Exception as e:
            if not ready.done():
                ready.set_exception(e)
            else:
                log.warning(f"MCP_SESSION_LOST | error={type(e).__name__}: {e}")
        finally:
            self._session = None

    async def _connect(self) -> ClientSession:
        loop = asyncio.get_running_loop()
        ready: asyncio.Future = loop.create_future()
        self._stop = asyncio.Event()
        self._runner = loop.create_task(self._hold_session(ready))
        return await ready

    async def _get_session(self) -> ClientSession:
        if self._session is not None:
            return self._session
        if self._connecting is None or self._connecting.done():
            self._connecting = asyncio.ensure_future(self._connect())
        return await asyncio.shield(self._connecting)

    async def close(self) -> None:
        runner, self._runner = self._runner, None
        self._connecting = None
        if runner is None:
            return
        if self._stop is not None:
            self._stop.set()
        await runner
        log.info(f"MCP_CLOSED | command={self.command}")

    # ────────────────────────────────────────────────────────
    # ToolExecutor
    # ────────────────────────────────────────────────────────

    async def list_tools(self) -> List[ToolDefinition]:
        session = await self._get_session()
        try:
            result = await session.list_tools()
        except Exception:
            await self.close()
            raise

        tools = [
            ToolDefinition(
                name=t.name,
                description=t.description or "",
                argument_schema=t.inputSchema or {"type": "object", "properties": {}},
            )
            for t in result.tools
        ]
        log.info(f"MCP_LIST_TOOLS | command={self.command} | count={len(tools)}")
        return tools

    async def call_tool(self, name: str, args: Dict[str, Any]) -> ToolCallResult:
        session = await self._get_session()
        try:
            result = await session.call_tool(name, args)
        except Exception:
            await self.close()
            raise

        texts = tuple(
            getattr(c, "text", "") for c in (result.content or []) if getattr(c, "type", None) == "text"
        )
        return ToolCallResult(texts=texts, is_error=bool(getattr(result, "isError", False)))


def build_tool_executor(cfg):
    """Pick the executor named by ``TOOL_EXECUTOR``."""
    if cfg.TOOL_EXECUTOR == "mcp":
        return McpToolExecutor.from_config(cfg)
    if cfg.TOOL_EXECUTOR != "local":
        log.warning(f"TOOL_EXECUTOR_UNKNOWN | value={cfg.TOOL_EXECUTOR} | using=local")
    return LocalToolExecutor()
