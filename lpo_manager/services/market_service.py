"""
Transfer market and currency exchange.

Every purchase moves gold/diamond from buyer to seller and the player to the
buyer in a single transaction. Debits are guarded in SQL as well as checked
up front, so a balance can never go negative.
"""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Any

from lpo_manager.errors import (
    InsufficientFundsError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from lpo_manager.models import ExchangeType, Position, TradeStatus
from lpo_manager.persistence.db import transaction
from lpo_manager.persistence.repositories import (
    CurrencyExchangeRepository,
    PlayerRepository,
    TeamRepository,
    TradeRepository,
)

logger = logging.getLogger(__name__)

MAX_ROSTER = 10
EXCHANGE_RATE = 1000  # gold per diamond
MARKET_LIMIT = 100


class MarketService:
    def __init__(self) -> None:
        self._trade_repo = TradeRepository()
        self._player_repo = PlayerRepository()
        self._team_repo = TeamRepository()
        self._exchange_repo = CurrencyExchangeRepository()

    def list_market(
        self,
        conn: sqlite3.Connection,
        position: str | None = None,
        min_overall: int | None = None,
        max_overall: int | None = None,
        sort_by: str = "newest",
    ) -> list[dict[str, Any]]:
        if position is not None:
            try:
                position = Position(position.upper()).value
            except ValueError:
                raise ValidationError(f"Unknown position: {position}") from None
        return self._trade_repo.list_market(
            conn, position=position, min_overall=min_overall, max_overall=max_overall,
            sort_by=sort_by, limit=MARKET_LIMIT,
        )

    def my_trades(self, conn: sqlite3.Connection, team_id: str) -> list[dict[str, Any]]:
        return self._trade_repo.list_by_team(conn, team_id)

    def list_player(
        self,
        conn: sqlite3.Connection,
        team_id: str,
        player_id: str,
        price_gold: int,
        price_diamond: int,
        now: datetime,
    ) -> dict[str, Any]:
        """Put an owned player on the market."""
        if price_gold < 0 or price_diamond < 0:
            raise ValidationError("Prices cannot be negative")
        if price_gold == 0 and price_diamond == 0:
            raise ValidationError("Set a gold or diamond price")
        player = self._player_repo.get(conn, player_id)
        if player is None or player.team_id != team_id:
            raise NotFoundError("Player not found in your roster")
        with transaction(conn):
            if self._trade_repo.find_listed_for_player(conn, player_id):
                raise InvalidStateError("Player is already listed")
            trade = self._trade_repo.create(conn, player_id, team_id, price_gold, price_diamond, now)
        return trade.to_dict()

    def buy(self, conn: sqlite3.Connection, team_id: str, trade_id: str, now: datetime) -> dict[str, Any]:
        """Debit buyer, credit seller, move the player (benched), mark the trade SOLD."""
        with transaction(conn):
            trade = self._trade_repo.get(conn, trade_id)
            if trade is None:
                raise NotFoundError(f"Trade not found: {trade_id}")
            if trade.status != TradeStatus.LISTED:
                raise InvalidStateError("Trade is no longer available")
            if trade.seller_team_id == team_id:
                raise ValidationError("Cannot buy your own player")
            buyer = self._team_repo.get(conn, team_id)
            if buyer is None:
                raise NotFoundError(f"Team not found: {team_id}")
            player = self._player_repo.get(conn, trade.player_id)
            if player is None or player.team_id != trade.seller_team_id:
                raise InvalidStateError("Player is no longer owned by the seller")
            if self._player_repo.count_by_team(conn, team_id) >= MAX_ROSTER:
                raise InvalidStateError(f"Roster is full ({MAX_ROSTER} players)")
            if buyer.gold < trade.price_gold:
                raise InsufficientFundsError("Insufficient gold")
            if buyer.diamond < trade.price_diamond:
                raise InsufficientFundsError("Insufficient diamond")
            if not self._team_repo.adjust_currency(
                conn, team_id, gold=-trade.price_gold, diamond=-trade.price_diamond
            ):
                raise InsufficientFundsError("Insufficient funds")
            self._team_repo.adjust_currency(
                conn, trade.seller_team_id, gold=trade.price_gold, diamond=trade.price_diamond
            )
            self._player_repo.transfer(conn, trade.player_id, team_id)
            if not self._trade_repo.mark_sold(conn, trade_id, team_id, now):
                raise InvalidStateError("Trade is no longer available")
        logger.info("Trade %s sold to %s", trade_id, team_id)
        return self._trade_repo.get(conn, trade_id).to_dict()

    def cancel(self, conn: sqlite3.Connection, team_id: str, trade_id: str) -> dict[str, Any]:
        trade = self._trade_repo.get(conn, trade_id)
        if trade is None:
            raise NotFoundError(f"Trade not found: {trade_id}")
        if trade.seller_team_id != team_id:
            raise PermissionDeniedError("Only the seller can cancel a listing")
        if trade.status != TradeStatus.LISTED:
            raise InvalidStateError("Only listed trades can be cancelled")
        if not self._trade_repo.cancel(conn, trade_id):
            raise InvalidStateError("Only listed trades can be cancelled")
        return self._trade_repo.get(conn, trade_id).to_dict()

    def exchange(
        self,
        conn: sqlite3.Connection,
        team_id: str,
        exchange_type: str,
        amount: int,
        now: datetime,
    ) -> dict[str, Any]:
        """
        GOLD_TO_DIAMOND spends `amount` gold for floor(amount / 1000) diamond;
        DIAMOND_TO_GOLD spends `amount` diamond for amount * 1000 gold.
        """
        try:
            kind = ExchangeType(exchange_type)
        except ValueError:
            raise ValidationError("Invalid exchange type") from None
        if amount <= 0:
            raise ValidationError("Amount must be positive")
        if kind == ExchangeType.GOLD_TO_DIAMOND:
            result = amount // EXCHANGE_RATE
            if result == 0:
                raise ValidationError(f"At least {EXCHANGE_RATE} gold is needed for one diamond")
            gold_delta, diamond_delta = -amount, result
        else:
            result = amount * EXCHANGE_RATE
            gold_delta, diamond_delta = result, -amount
        with transaction(conn):
            team = self._team_repo.get(conn, team_id)
            if team is None:
                raise NotFoundError(f"Team not found: {team_id}")
            if not self._team_repo.adjust_currency(conn, team_id, gold=gold_delta, diamond=diamond_delta):
                currency = "gold" if kind == ExchangeType.GOLD_TO_DIAMOND else "diamond"
                raise InsufficientFundsError(f"Insufficient {currency}")
            record = self._exchange_repo.create(conn, team_id, kind, amount, EXCHANGE_RATE, result, now)
        team = self._team_repo.get(conn, team_id)
        return {**record, "gold": team.gold, "diamond": team.diamond}
