from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

import discord
from discord.ext import commands

from application.accounts import AccountService
from application.services import BlackjackStep, GameService, MinesStep
from domain.errors import SettlementFault, WagerError
from domain.models import STATUS_PLAYING, BlackjackGame, Card, User
from domain.payouts import BOARD_SIZE

logger = logging.getLogger(__name__)

SUIT_SYMBOLS = {"hearts": "♥", "diamonds": "♦", "clubs": "♣", "spades": "♠"}

HELP_TEXT = (
    "!balance                          - show your points\n"
    "!dice <bet> <target> <under|over> - roll 0-100 against a target\n"
    "!limbo <bet> <multiplier>         - win if the crash point reaches it\n"
    "!keno <bet> <risk> <n1,n2,...>    - pick 1-10 numbers from 1-40\n"
    "!mines <bet> <mines>              - start a mines round\n"
    "!reveal <tile 0-24>               - reveal a tile\n"
    "!cashout                          - take your mines winnings\n"
    "!bj <bet>                         - start blackjack\n"
    "!hit / !stand / !double / !split  - blackjack actions\n"
)


def _card(card: Card) -> str:
    return f"{card.rank}{SUIT_SYMBOLS.get(card.suit, '?')}"


def _cards(cards: List[Card]) -> str:
    return " ".join(_card(c) for c in cards)


def render_mines_board(step: MinesStep) -> str:
    """5x5 board; mines are only drawn once the round is over."""

    game = step.game
    show_mines = step.finished
    hit = step.outcome.position if step.outcome and step.outcome.hit_mine else None
    rows = []
    for row in range(5):
        cells = []
        for col in range(5):
            tile = row * 5 + col
            if tile == hit:
                cells.append("💥")
            elif tile in game.revealed:
                cells.append("💎")
            elif show_mines and tile in game.mines:
                cells.append("💣")
            else:
                cells.append("⬛")
        rows.append("".join(cells))
    return "\n".join(rows)


def render_blackjack(game: BlackjackGame) -> str:
    lines = []
    for index, hand in enumerate(game.hands):
        marker = "▶ " if game.status == STATUS_PLAYING and index == game.current_hand and game.has_split else ""
        lines.append(f"{marker}Your hand: {_cards(hand.cards)} ({hand.total}), bet {hand.bet}")
    if game.status == STATUS_PLAYING:
        lines.append(f"Dealer: {_card(game.dealer[0])} ??")
    else:
        lines.append(f"Dealer: {_cards(game.dealer)} ({game.dealer_total})")
    return "\n".join(lines)


def _blackjack_message(step: BlackjackStep) -> str:
    text = render_blackjack(step.game)
    if step.finished:
        results = ", ".join(f"{r.result} ({r.payout})" for r in step.results)
        text += f"\nResult: {results}. Paid {step.total_payout}, balance {step.balance}."
    return text


def _parse_numbers(raw: str) -> List[int]:
    try:
        return [int(part) for part in raw.replace(" ", "").split(",") if part]
    except ValueError as exc:
        raise commands.BadArgument("Numbers must be a comma-separated list, e.g. 3,7,21") from exc


def create_discord_bot(games: GameService, accounts: AccountService) -> commands.Bot:
    """
    Configure and return a Discord bot exposing the mini-games as chat
    commands. Players are the users linked to their Discord account.
    """

    intents = discord.Intents.default()
    intents.message_content = True

    # Disable the default help command so we can provide our own `!help`.
    bot = commands.Bot(command_prefix="!", intents=intents, help_command=None)

    async def _require_player(ctx: commands.Context) -> Optional[User]:
        user = await asyncio.to_thread(accounts.find_discord, str(ctx.author.id))
        if user is None:
            await ctx.send(
                f"{ctx.author.mention}, your Discord account is not linked yet. "
                "Link it on the rewards site to play."
            )
        return user

    @bot.event
    async def on_ready():
        logger.info("Discord bot logged in as %s (id=%s)", bot.user, bot.user.id)

    @bot.event
    async def on_command_error(ctx: commands.Context, error: commands.CommandError):
        original = getattr(error, "original", error)
        if isinstance(original, WagerError):
            await ctx.send(original.message)
        elif isinstance(original, SettlementFault):
            await ctx.send(original.message)
        elif isinstance(error, (commands.BadArgument, commands.MissingRequiredArgument)):
            await ctx.send(f"{error}\nType !help to see usage.")
        elif isinstance(error, commands.CommandNotFound):
            return
        else:
            logger.error("Discord command %s failed", ctx.command, exc_info=original)
            await ctx.send("Something went wrong. Please try again.")

    @bot.command(name="help")
    async def help_cmd(ctx: commands.Context):
        await ctx.send(f"```\n{HELP_TEXT}```")

    @bot.command(name="balance")
    async def balance_cmd(ctx: commands.Context):
        user = await _require_player(ctx)
        if user is None:
            return
        await ctx.send(f"{user.display_name}, you have {user.balance} points.")

    @bot.command(name="dice")
    async def dice_cmd(ctx: commands.Context, bet: int, target: float, direction: str):
        user = await _require_player(ctx)
        if user is None:
            return
        result = await asyncio.to_thread(games.play_dice, user.id, bet, target, direction.lower())
        o = result.outcome
        verdict = f"won {o.payout}" if o.won else "lost"
        await ctx.send(
            f"🎲 Rolled {o.roll:.2f} ({o.direction} {o.target:g}): you {verdict}. "
            f"Balance: {result.balance}"
        )

    @bot.command(name="limbo")
    async def limbo_cmd(ctx: commands.Context, bet: int, target: float):
        user = await _require_player(ctx)
        if user is None:
            return
        result = await asyncio.to_thread(games.play_limbo, user.id, bet, target)
        o = result.outcome
        verdict = f"won {o.payout}" if o.won else "lost"
        await ctx.send(f"🚀 Crashed at {o.crash_point:.2f}x (target {o.target:g}x): you {verdict}. Balance: {result.balance}")

    @bot.command(name="keno")
    async def keno_cmd(ctx: commands.Context, bet: int, risk: str, numbers: str):
        user = await _require_player(ctx)
        if user is None:
            return
        picks = _parse_numbers(numbers)
        result = await asyncio.to_thread(games.play_keno, user.id, bet, picks, risk.lower())
        o = result.outcome
        await ctx.send(
            f"🎱 Drawn: {', '.join(str(n) for n in sorted(o.drawn))}\n"
            f"{o.hits} hit(s) at {o.multiplier:g}x: paid {o.payout}. Balance: {result.balance}"
        )

    @bot.command(name="mines")
    async def mines_cmd(ctx: commands.Context, bet: int, mine_count: int):
        user = await _require_player(ctx)
        if user is None:
            return
        step = await asyncio.to_thread(games.start_mines, user.id, bet, mine_count)
        await ctx.send(
            f"💣 Mines started with {mine_count} mine(s), bet {bet}. "
            f"Reveal tiles with !reveal <0-{BOARD_SIZE - 1}>.\n{render_mines_board(step)}"
        )

    @bot.command(name="reveal")
    async def reveal_cmd(ctx: commands.Context, position: int):
        user = await _require_player(ctx)
        if user is None:
            return
        step = await asyncio.to_thread(games.reveal_mine, user.id, position)
        o = step.outcome
        if o.hit_mine:
            headline = f"💥 Mine! You lost. Balance: {step.balance}"
        elif o.finished:
            headline = f"🏆 Board cleared at {o.multiplier:.2f}x: paid {o.payout}. Balance: {step.balance}"
        else:
            headline = f"💎 Safe! Multiplier now {o.multiplier:.2f}x. !reveal again or !cashout."
        await ctx.send(f"{headline}\n{render_mines_board(step)}")

    @bot.command(name="cashout")
    async def cashout_cmd(ctx: commands.Context):
        user = await _require_player(ctx)
        if user is None:
            return
        step = await asyncio.to_thread(games.cashout_mines, user.id)
        await ctx.send(
            f"💰 Cashed out at {step.outcome.multiplier:.2f}x: paid {step.outcome.payout}. "
            f"Balance: {step.balance}\n{render_mines_board(step)}"
        )

    @bot.command(name="bj")
    async def blackjack_cmd(ctx: commands.Context, bet: int):
        user = await _require_player(ctx)
        if user is None:
            return
        step = await asyncio.to_thread(games.start_blackjack, user.id, bet)
        await ctx.send(_blackjack_message(step))

    @bot.command(name="hit")
    async def hit_cmd(ctx: commands.Context):
        user = await _require_player(ctx)
        if user is None:
            return
        step = await asyncio.to_thread(games.blackjack_hit, user.id)
        await ctx.send(_blackjack_message(step))

    @bot.command(name="stand")
    async def stand_cmd(ctx: commands.Context):
        user = await _require_player(ctx)
        if user is None:
            return
        step = await asyncio.to_thread(games.blackjack_stand, user.id)
        await ctx.send(_blackjack_message(step))

    @bot.command(name="double")
    async def double_cmd(ctx: commands.Context):
        user = await _require_player(ctx)
        if user is None:
            return
        step = await asyncio.to_thread(games.blackjack_double, user.id)
        await ctx.send(_blackjack_message(step))

    @bot.command(name="split")
    async def split_cmd(ctx: commands.Context):
        user = await _require_player(ctx)
        if user is None:
            return
        step = await asyncio.to_thread(games.blackjack_split, user.id)
        await ctx.send(_blackjack_message(step))

    return bot
