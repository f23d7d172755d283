from HealthChat.crud import chat as store
from HealthChat.services.parent_linker import most_recent_message, repair_parent_id, verify_parent_message_id


def _conversation(db, user_id="user-1"):
    conv = store.create_conversation(db, user_id, "A42")
    db.commit()
    return conv


def test_first_message_parent_is_forced_to_none(db):
    conv = _conversation(db)

    record = verify_parent_message_id(db, conv.id, {"parent_message_id": "bogus", "content": "hi"})

    assert record["parent_message_id"] is None
    assert record["content"] == "hi"


def test_missing_parent_defaults_to_most_recent(db):
    conv = _conversation(db)
    first = store.create_chat_message(db, conv.id, "user", "one")
    second = store.create_chat_message(db, conv.id, "assistant", "two", parent_message_id=first.id)

    record = verify_parent_message_id(db, conv.id, {})

    assert most_recent_message(db, conv.id).id == second.id
    assert record["parent_message_id"] == second.id


def test_valid_parent_is_kept(db):
    conv = _conversation(db)
    first = store.create_chat_message(db, conv.id, "user", "one")
    store.create_chat_message(db, conv.id, "assistant", "two", parent_message_id=first.id)

    record = verify_parent_message_id(db, conv.id, {"parent_message_id": first.id})

    assert record["parent_message_id"] == first.id


def test_unknown_or_foreign_parent_is_replaced(db):
    conv = _conversation(db)
    other = _conversation(db, user_id="user-2")
    foreign = store.create_chat_message(db, other.id, "user", "elsewhere")
    latest = store.create_chat_message(db, conv.id, "user", "one")

    assert verify_parent_message_id(db, conv.id, {"parent_message_id": "nope"})["parent_message_id"] == latest.id
    assert verify_parent_message_id(db, conv.id, {"parent_message_id": foreign.id})["parent_message_id"] == latest.id


def test_candidate_is_not_mutated(db):
    conv = _conversation(db)
    store.create_chat_message(db, conv.id, "user", "one")
    candidate = {"parent_message_id": None}

    verify_parent_message_id(db, conv.id, candidate)

    assert candidate == {"parent_message_id": None}


def test_repair_backfills_predecessor(db):
    conv = _conversation(db)
    first = store.create_chat_message(db, conv.id, "user", "one")
    second = store.create_chat_message(db, conv.id, "assistant", "two", parent_message_id=None)

    repaired = repair_parent_id(db, conv.id, second.id)

    assert repaired.parent_message_id == first.id


def test_repair_leaves_first_and_linked_messages_alone(db):
    conv = _conversation(db)
    first = store.create_chat_message(db, conv.id, "user", "one")
    second = store.create_chat_message(db, conv.id, "assistant", "two", parent_message_id=first.id)

    assert repair_parent_id(db, conv.id, first.id).parent_message_id is None
    assert repair_parent_id(db, conv.id, second.id).parent_message_id == first.id
    assert repair_parent_id(db, conv.id, "missing") is None
