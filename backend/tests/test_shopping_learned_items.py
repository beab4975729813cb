from app.modules.shopping.models import LearnedItem
from app.modules.shopping.services import learned_items_service
from app.modules.shopping.services.learned_items_service import (
    FindExactMatch,
    ListLearnedItems,
    ScoreLearnedName,
    SuggestLearnedItems,
    UpsertLearnedItem,
)
from app.modules.shopping.services.list_service import AddItems, NewItem
from app.modules.shopping.services.stores_service import CreateStore


def _BuildLearned(name: str, frequency: int = 1, section_id: str = "s1") -> LearnedItem:
    return LearnedItem(Id=f"id-{name}", StoreId="store", Name=name, SectionId=section_id, Frequency=frequency)


def test_empty_query_returns_top_five_by_frequency():
    items = [_BuildLearned(f"item {i}", frequency=i) for i in range(10)]
    names = [item.Name for item in SuggestLearnedItems(items, "  ")]
    assert names == ["item 9", "item 8", "item 7", "item 6", "item 5"]


def test_exact_match_always_ranks_first():
    items = [
        _BuildLearned("milk chocolate", frequency=40),
        _BuildLearned("almond milk", frequency=25),
        _BuildLearned("milk", frequency=1),
        _BuildLearned("bread", frequency=90),
    ]
    suggestions = SuggestLearnedItems(items, "Milk")

    assert suggestions[0].Name == "milk"
    assert "bread" not in [item.Name for item in suggestions]
    assert FindExactMatch(suggestions, "MILK").Name == "milk"


def test_close_scores_break_ties_by_frequency():
    items = [
        _BuildLearned("whole milk", frequency=2),
        _BuildLearned("skim milk", frequency=30),
    ]
    names = [item.Name for item in SuggestLearnedItems(items, "milk")]
    assert names == ["skim milk", "whole milk"]


def test_names_shorter_than_query_are_scored_whole():
    assert ScoreLearnedName("steak", "steaks") == 100
    assert ScoreLearnedName("steak", "k") < 60
    assert ScoreLearnedName("chocolate rice", "ice") < 60


def test_query_contained_in_name_beats_popular_fragments():
    items = [
        _BuildLearned("steaks", frequency=1),
        _BuildLearned("tea", frequency=20),
        _BuildLearned("a", frequency=30),
        _BuildLearned("k", frequency=40),
    ]
    names = [item.Name for item in SuggestLearnedItems(items, "steak")]
    assert names[0] == "steaks"
    assert "a" not in names
    assert "k" not in names


def test_ranking_does_not_depend_on_input_order():
    items = [
        _BuildLearned("bananas", frequency=1),
        _BuildLearned("banan", frequency=5),
        _BuildLearned("banana bread", frequency=9),
        _BuildLearned("bandana", frequency=50),
        _BuildLearned("ban", frequency=70),
    ]
    forward = [item.Name for item in SuggestLearnedItems(items, "banana")]
    backward = [item.Name for item in SuggestLearnedItems(list(reversed(items)), "banana")]
    assert forward == backward
    assert forward[:2] == ["banana bread", "bananas"]


def test_suggestions_are_capped_at_eight():
    items = [_BuildLearned(f"milk {i}", frequency=i) for i in range(12)]
    assert len(SuggestLearnedItems(items, "milk")) == 8


def test_find_exact_match_none_for_blank_or_missing():
    items = [_BuildLearned("milk")]
    assert FindExactMatch(items, "") is None
    assert FindExactMatch(items, "eggs") is None


def test_upsert_bumps_frequency_and_takes_latest_section(db, make_user):
    owner = make_user("owner@shopper.io")
    store = CreateStore(db, "Costco", owner.Id)

    UpsertLearnedItem(db, store.Id, "Milk", "dairy", owner.Id)
    UpsertLearnedItem(db, store.Id, "  MILK ", "fridge", owner.Id)
    db.commit()

    rows = ListLearnedItems(db, store.Id)
    assert len(rows) == 1
    assert rows[0].Name == "milk"
    assert rows[0].Frequency == 2
    assert rows[0].SectionId == "fridge"


def test_learned_items_are_scoped_per_store(db, make_user):
    owner = make_user("owner@shopper.io")
    costco = CreateStore(db, "Costco", owner.Id)
    market = CreateStore(db, "Market", owner.Id)

    AddItems(db, costco.Id, [NewItem(Name="Milk", SectionId="dairy")], actor_id=owner.Id)

    assert [row.Name for row in ListLearnedItems(db, costco.Id)] == ["milk"]
    assert ListLearnedItems(db, market.Id) == []


def test_concurrent_first_adds_may_duplicate_a_learned_name(db, make_user, monkeypatch):
    owner = make_user("owner@shopper.io")
    store = CreateStore(db, "Costco", owner.Id)
    # Both writers looked before either inserted.
    monkeypatch.setattr(learned_items_service, "_FindLearnedItem", lambda *_args: None)

    AddItems(db, store.Id, [NewItem(Name="Milk", SectionId="dairy")], actor_id=owner.Id)
    AddItems(db, store.Id, [NewItem(Name="milk", SectionId="dairy")], actor_id=owner.Id)

    rows = ListLearnedItems(db, store.Id)
    assert [row.Name for row in rows] == ["milk", "milk"]
    assert [row.Frequency for row in rows] == [1, 1]
