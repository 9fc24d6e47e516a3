"""
Tests for the transfer market and currency exchange.
Balances never go negative; a sale moves money and the player together.
"""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from lpo_manager.errors import (
    InsufficientFundsError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from lpo_manager.models import TradeStatus
from lpo_manager.persistence.db import get_connection, init_db, set_db_path
from lpo_manager.persistence.repositories import PlayerRepository, TeamRepository
from lpo_manager.services.market_service import EXCHANGE_RATE, MAX_ROSTER, MarketService
from lpo_manager.services.team_service import TeamService
from lpo_manager.simulation.rng import SeededRNG

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def db_conn(tmp_path):
    db_path = tmp_path / "market_test.db"
    set_db_path(db_path)
    init_db(db_path=db_path)
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def seller_and_buyer(db_conn):
    service = TeamService()
    _, seller = service.register(db_conn, "seller", "hash", "Seller FC", "SOUTH", SeededRNG(1))
    _, buyer = service.register(db_conn, "buyer", "hash", "Buyer FC", "NORTH", SeededRNG(2))
    return seller, buyer


@pytest.fixture
def market():
    return MarketService()


def _first_player(db_conn, team_id):
    return PlayerRepository().list_by_team(db_conn, team_id)[0]


def test_list_and_buy_moves_money_and_player(db_conn, seller_and_buyer, market):
    seller, buyer = seller_and_buyer
    player = _first_player(db_conn, seller.id)
    trade = market.list_player(db_conn, seller.id, player.id, 30_000, 10, NOW)
    assert trade["status"] == TradeStatus.LISTED.value
    assert market.list_market(db_conn)[0]["player_id"] == player.id

    sold = market.buy(db_conn, buyer.id, trade["id"], NOW)
    assert sold["status"] == TradeStatus.SOLD.value
    assert sold["buyer_team_id"] == buyer.id

    team_repo = TeamRepository()
    assert (team_repo.get(db_conn, buyer.id).gold, team_repo.get(db_conn, buyer.id).diamond) == (70_000, 90)
    assert (team_repo.get(db_conn, seller.id).gold, team_repo.get(db_conn, seller.id).diamond) == (130_000, 110)
    moved = PlayerRepository().get(db_conn, player.id)
    assert moved.team_id == buyer.id
    assert not moved.is_starter
    assert market.list_market(db_conn) == []


def test_buy_without_funds_changes_nothing(db_conn, seller_and_buyer, market):
    seller, buyer = seller_and_buyer
    player = _first_player(db_conn, seller.id)
    trade = market.list_player(db_conn, seller.id, player.id, 100_001, 0, NOW)
    with pytest.raises(InsufficientFundsError):
        market.buy(db_conn, buyer.id, trade["id"], NOW)
    assert TeamRepository().get(db_conn, buyer.id).gold == 100_000
    assert PlayerRepository().get(db_conn, player.id).team_id == seller.id
    assert market.list_market(db_conn)[0]["id"] == trade["id"]


def test_cannot_buy_own_listing(db_conn, seller_and_buyer, market):
    seller, _ = seller_and_buyer
    player = _first_player(db_conn, seller.id)
    trade = market.list_player(db_conn, seller.id, player.id, 100, 0, NOW)
    with pytest.raises(ValidationError):
        market.buy(db_conn, seller.id, trade["id"], NOW)


def test_sold_trade_cannot_be_bought_again(db_conn, seller_and_buyer, market):
    seller, buyer = seller_and_buyer
    trade = market.list_player(db_conn, seller.id, _first_player(db_conn, seller.id).id, 100, 0, NOW)
    market.buy(db_conn, buyer.id, trade["id"], NOW)
    _, third = TeamService().register(db_conn, "third", "hash", "Third FC", "SOUTH", SeededRNG(3))
    with pytest.raises(InvalidStateError):
        market.buy(db_conn, third.id, trade["id"], NOW)


def test_full_roster_cannot_buy(db_conn, seller_and_buyer, market):
    seller, buyer = seller_and_buyer
    player_repo = PlayerRepository()
    for i in range(MAX_ROSTER - 5):
        player_repo.create(db_conn, f"Extra {i}", "MID", 50, 50, 50, 50, 50, team_id=buyer.id)
    trade = market.list_player(db_conn, seller.id, _first_player(db_conn, seller.id).id, 100, 0, NOW)
    with pytest.raises(InvalidStateError):
        market.buy(db_conn, buyer.id, trade["id"], NOW)


def test_listing_guards(db_conn, seller_and_buyer, market):
    seller, buyer = seller_and_buyer
    player = _first_player(db_conn, seller.id)
    with pytest.raises(ValidationError):
        market.list_player(db_conn, seller.id, player.id, 0, 0, NOW)
    with pytest.raises(NotFoundError):
        market.list_player(db_conn, buyer.id, player.id, 100, 0, NOW)
    market.list_player(db_conn, seller.id, player.id, 100, 0, NOW)
    with pytest.raises(InvalidStateError):
        market.list_player(db_conn, seller.id, player.id, 200, 0, NOW)


def test_only_seller_can_cancel(db_conn, seller_and_buyer, market):
    seller, buyer = seller_and_buyer
    trade = market.list_player(db_conn, seller.id, _first_player(db_conn, seller.id).id, 100, 0, NOW)
    with pytest.raises(PermissionDeniedError):
        market.cancel(db_conn, buyer.id, trade["id"])
    cancelled = market.cancel(db_conn, seller.id, trade["id"])
    assert cancelled["status"] == TradeStatus.CANCELLED.value
    with pytest.raises(InvalidStateError):
        market.cancel(db_conn, seller.id, trade["id"])


def test_market_filters_and_sorting(db_conn, seller_and_buyer, market):
    seller, _ = seller_and_buyer
    players = PlayerRepository().list_by_team(db_conn, seller.id)
    for price, player in zip((300, 100, 200), players):
        market.list_player(db_conn, seller.id, player.id, price, 0, NOW)
    prices = [t["price_gold"] for t in market.list_market(db_conn, sort_by="price_asc")]
    assert prices == [100, 200, 300]
    top = players[0]
    only = market.list_market(db_conn, position=top.position.lower())
    assert [t["player_id"] for t in only] == [top.id]
    with pytest.raises(ValidationError):
        market.list_market(db_conn, position="CARRY")
    assert len(market.my_trades(db_conn, seller.id)) == 3


def test_exchange_gold_to_diamond(db_conn, seller_and_buyer, market):
    seller, _ = seller_and_buyer
    result = market.exchange(db_conn, seller.id, "GOLD_TO_DIAMOND", 2_500, NOW)
    assert result["result_amount"] == 2_500 // EXCHANGE_RATE
    assert (result["gold"], result["diamond"]) == (97_500, 102)


def test_exchange_diamond_to_gold(db_conn, seller_and_buyer, market):
    seller, _ = seller_and_buyer
    result = market.exchange(db_conn, seller.id, "DIAMOND_TO_GOLD", 40, NOW)
    assert (result["gold"], result["diamond"]) == (140_000, 60)


def test_exchange_never_overdraws(db_conn, seller_and_buyer, market):
    seller, _ = seller_and_buyer
    with pytest.raises(InsufficientFundsError):
        market.exchange(db_conn, seller.id, "DIAMOND_TO_GOLD", 101, NOW)
    with pytest.raises(InsufficientFundsError):
        market.exchange(db_conn, seller.id, "GOLD_TO_DIAMOND", 200_000, NOW)
    with pytest.raises(ValidationError):
        market.exchange(db_conn, seller.id, "GOLD_TO_DIAMOND", 999, NOW)
    with pytest.raises(ValidationError):
        market.exchange(db_conn, seller.id, "GOLD_TO_SILVER", 1_000, NOW)
    team = TeamRepository().get(db_conn, seller.id)
    assert (team.gold, team.diamond) == (100_000, 100)
