import database
from database import FileStorage, MemoryStorage, MongoStorage, get_storage
from preferences import Language, get_language, set_language, toggle_language


def test_memory_storage():
    storage = MemoryStorage({"cart": "[]"})
    assert storage.get_item("cart") == "[]"
    storage.set_item("language", "ar")
    assert storage.get_item("language") == "ar"
    storage.remove_item("language")
    storage.remove_item("missing")
    assert storage.get_item("language") is None


def test_file_storage_survives_reopen(tmp_path):
    path = str(tmp_path / "state.json")
    FileStorage(path).set_item("cart", '[{"a": 1}]')
    FileStorage(path).set_item("language", "ar")

    reopened = FileStorage(path)
    assert reopened.get_item("cart") == '[{"a": 1}]'
    assert reopened.get_item("language") == "ar"

    reopened.remove_item("cart")
    assert FileStorage(path).get_item("cart") is None
    assert list(tmp_path.iterdir()) == [tmp_path / "state.json"]


def test_file_storage_missing_file(tmp_path):
    assert FileStorage(str(tmp_path / "nothing.json")).get_item("cart") is None


def test_file_storage_recovers_from_corrupt_file(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{not json")
    storage = FileStorage(str(path))
    assert storage.get_item("cart") is None

    storage.set_item("cart", "[]")
    assert storage.get_item("cart") == "[]"


def test_file_storage_ignores_non_object_json(tmp_path):
    path = tmp_path / "state.json"
    path.write_text('["cart"]')
    assert FileStorage(str(path)).get_item("cart") is None


class FakeCollection:
    def __init__(self):
        self.docs = {}

    def find_one(self, query):
        return self.docs.get(query["key"])

    def update_one(self, query, update, upsert=False):
        doc = self.docs.get(query["key"])
        if doc is None:
            assert upsert
            doc = {"key": query["key"], **update.get("$setOnInsert", {})}
            self.docs[query["key"]] = doc
        doc.update(update["$set"])

    def delete_one(self, query):
        self.docs.pop(query["key"], None)


def test_mongo_storage():
    collection = FakeCollection()
    storage = MongoStorage(collection)
    assert storage.get_item("cart") is None

    storage.set_item("cart", "[]")
    created = collection.docs["cart"]["created_at"]
    storage.set_item("cart", '[{"x": 1}]')

    assert storage.get_item("cart") == '[{"x": 1}]'
    assert collection.docs["cart"]["created_at"] == created
    assert collection.docs["cart"]["updated_at"] >= created

    storage.remove_item("cart")
    assert storage.get_item("cart") is None


def test_get_storage_defaults_to_file(monkeypatch, tmp_path):
    monkeypatch.setattr(database.settings, "DATABASE_URL", None)
    monkeypatch.setattr(database.settings, "STORAGE_PATH", str(tmp_path / "s.json"))
    storage = get_storage()
    assert isinstance(storage, FileStorage)
    assert storage.path == str(tmp_path / "s.json")


def test_get_storage_uses_mongo_when_configured(monkeypatch):
    monkeypatch.setattr(database.settings, "DATABASE_URL", "mongodb://localhost:27017")
    monkeypatch.setattr(database, "_db", None)
    monkeypatch.setattr(database, "_client", None)
    storage = get_storage()
    assert isinstance(storage, MongoStorage)
    assert storage.collection.name == "client_state"
    database._client.close()


def test_language_preference():
    storage = MemoryStorage()
    assert get_language(storage) is Language.EN

    assert toggle_language(storage) is Language.AR
    assert storage.get_item("language") == "ar"
    assert get_language(storage).direction == "rtl"

    assert toggle_language(storage) is Language.EN
    assert set_language(storage, "ar") is Language.AR


def test_unknown_language_falls_back_to_english():
    assert get_language(MemoryStorage({"language": "fr"})) is Language.EN
