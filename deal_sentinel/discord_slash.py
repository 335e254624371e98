"""
Slash-command Discord bot for DealSentinel.

The bot hosts the service on its own event loop, so the price poller runs for
as long as the bot is connected.
"""

from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

import discord
from discord import app_commands

from .config import cfg
from .errors import ValidationError
from .models import RefreshReport, TrackedGame
from .service import DealTrackerService, build_service
from .util import money

# ---------- logging / constants ----------
logging.basicConfig(level=cfg.log_level)
logger = logging.getLogger(__name__)
INTENTS = discord.Intents.default()  # slash commands don't need message_content
MAX_DISCORD = 1900
EPHEMERAL_DEFAULT = False


# ---------- formatting ----------
def format_results(results: List[Dict[str, Any]]) -> str:
    if not results:
        return "No games found. Try a different search term."
    rows = [f"{n}. **{r['title']}** - {r['price']} ({r['shop']})" for n, r in enumerate(results, 1)]
    return "\n".join(rows)


def format_tracked(games: List[TrackedGame]) -> str:
    if not games:
        return "No games tracked yet. Use /search and /track."
    rows = []
    for g in games:
        row = f"- **{g.title}** (`{g.id}`): current {money(g.current_price)} -> target {money(g.target_price)}"
        if g.last_error:
            row += f" - last check failed: {g.last_error}"
        rows.append(row)
    return "\n".join(rows)


def format_report(report: RefreshReport) -> str:
    msg = f"Checked {report.checked} game(s), {report.failed} failed."
    for a in report.alerts:
        msg += f"\n{a.title} is now {money(a.new_price)} (was {money(a.old_price)})"
    return msg


# ---------- helpers ----------
async def _ack(i: discord.Interaction, *, ephemeral: bool = EPHEMERAL_DEFAULT, thinking: bool = True):
    if not i.response.is_done():
        try:
            await i.response.defer(ephemeral=ephemeral, thinking=thinking)
        except discord.HTTPException:
            logger.warning("Could not defer interaction %s", i.id)

async def _finish(i: discord.Interaction, content: str, *, ephemeral: bool = EPHEMERAL_DEFAULT):
    content = (content or "").strip()
    if len(content) > MAX_DISCORD:
        content = content[:MAX_DISCORD]
    try:
        await i.edit_original_response(content=content or "Done.")
    except discord.HTTPException:
        await i.followup.send(content or "Done.", ephemeral=ephemeral)


# ---------- client ----------
class DealSlash(discord.Client):
    def __init__(self, service: Optional[DealTrackerService] = None) -> None:
        super().__init__(intents=INTENTS)
        self.tree = app_commands.CommandTree(self)
        self.service = service or build_service()
        # last /search per user, so /track can pick from it
        self.last_results: Dict[int, List[Dict[str, Any]]] = {}

        @self.tree.error
        async def on_app_command_error(interaction: discord.Interaction, error: Exception):
            logger.exception("Slash command error", exc_info=error)
            try:
                if not interaction.response.is_done():
                    await interaction.response.send_message(f"Error: {error}", ephemeral=True)
                else:
                    await interaction.followup.send(f"Error: {error}", ephemeral=True)
            except discord.HTTPException:
                pass  # already logged

    async def setup_hook(self) -> None:
        guild = None
        if cfg.discord_guild_id:
            try:
                guild = discord.Object(id=int(cfg.discord_guild_id))
            except ValueError:
                logger.warning("Invalid DISCORD_GUILD_ID in .env: %r", cfg.discord_guild_id)

        self._register_commands()
        if guild:
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
            logger.info("Synced %d guild commands to %s", len(synced), cfg.discord_guild_id)
        else:
            synced = await self.tree.sync()  # global sync (may take minutes to appear)
            logger.info("Synced %d global commands (may take time to appear)", len(synced))

        await self.service.start()

    async def close(self) -> None:
        await self.service.close()
        await super().close()

    def _register_commands(self) -> None:
        tree = self.tree
        service = self.service

        @tree.command(name="search", description="Search game deals by title")
        @app_commands.describe(query="e.g. hades")
        async def search(i: discord.Interaction, query: str):
            await _ack(i)
            response = await service.search(query)
            if "error" in response:
                await _finish(i, response["error"]); return
            self.last_results[i.user.id] = response["results"]
            await _finish(i, format_results(response["results"]))

        @tree.command(name="track", description="Track a game from your last /search")
        @app_commands.describe(pick="result number from /search", target_price="alert at or below this price (USD)")
        async def track(i: discord.Interaction, pick: int, target_price: float):
            await _ack(i)
            results = self.last_results.get(i.user.id) or []
            if not 1 <= pick <= len(results):
                await _finish(i, "Pick a result number from your last /search."); return
            try:
                game = await service.track(results[pick - 1], target_price)
            except ValidationError as e:
                await _finish(i, str(e)); return
            await _finish(i, f"Tracking **{game.title}**: current {money(game.current_price)} -> target {money(game.target_price)}")

        @tree.command(name="untrack", description="Stop tracking a game")
        @app_commands.describe(game_id="id shown by /tracked")
        async def untrack(i: discord.Interaction, game_id: str):
            await _ack(i)
            await service.remove(game_id)
            await _finish(i, f"Removed `{game_id}`.")

        @tree.command(name="tracked", description="Show tracked games")
        async def tracked(i: discord.Interaction):
            await _ack(i)
            await _finish(i, format_tracked(service.list_tracked()))

        @tree.command(name="checknow", description="Check all tracked prices now")
        async def checknow(i: discord.Interaction):
            await _ack(i)
            report = await service.check_now()
            await _finish(i, format_report(report))

    async def on_ready(self):
        logger.info("[slash] Logged in as %s", self.user)


# ---------- entrypoint ----------
def main():
    token = cfg.discord_bot_token
    if not token:
        raise SystemExit("DISCORD_BOT_TOKEN missing in environment/.env")
    DealSlash().run(token)

if __name__ == "__main__":
    main()
