import json

import config
from conftest import make_pose
from utils.reference_store import JsonFileStore, MemoryStore, ReferencePoseRepository


def test_repository_round_trip(reference_pose):
    repository = ReferencePoseRepository(MemoryStore())
    assert repository.load() is None
    assert not repository.exists()

    repository.save(reference_pose)
    assert repository.load() == reference_pose
    assert repository.exists()


def test_record_stored_under_reference_key(reference_pose):
    store = MemoryStore()
    ReferencePoseRepository(store).save(reference_pose)
    record = json.loads(store.get(config.REFERENCE_POSE_KEY))
    assert len(record['keypoints']) == 3
    assert record['keypoints'][0]['score'] == 0.9


def test_last_write_wins(reference_pose):
    repository = ReferencePoseRepository(MemoryStore())
    repository.save(reference_pose)
    replacement = make_pose([(0.2, 0.2)])
    repository.save(replacement)
    assert repository.load() == replacement


def test_corrupt_record_loads_as_none():
    store = MemoryStore({config.REFERENCE_POSE_KEY: '{"keypoints": "broken"}'})
    assert ReferencePoseRepository(store).load() is None

    store.set(config.REFERENCE_POSE_KEY, 'not json at all')
    assert ReferencePoseRepository(store).load() is None


def test_clear(reference_pose):
    repository = ReferencePoseRepository(MemoryStore())
    repository.save(reference_pose)
    repository.clear()
    assert repository.load() is None


def test_json_file_store_persists(tmp_path, reference_pose):
    path = tmp_path / 'store' / 'reference.json'
    ReferencePoseRepository(JsonFileStore(str(path))).save(reference_pose)

    reopened = ReferencePoseRepository(JsonFileStore(str(path)))
    assert reopened.load() == reference_pose


def test_json_file_store_keeps_other_keys(tmp_path, reference_pose):
    store = JsonFileStore(str(tmp_path / 'store.json'))
    store.set(config.PERFORMANCE_LEVEL_KEY, 'high')
    ReferencePoseRepository(store).save(reference_pose)
    assert store.get(config.PERFORMANCE_LEVEL_KEY) == 'high'

    store.delete(config.PERFORMANCE_LEVEL_KEY)
    assert store.get(config.PERFORMANCE_LEVEL_KEY) is None
    assert ReferencePoseRepository(store).exists()


def test_json_file_store_missing_or_corrupt_reads_empty(tmp_path):
    path = tmp_path / 'store.json'
    store = JsonFileStore(str(path))
    assert store.get('anything') is None

    path.write_text('{broken', encoding='utf-8')
    assert store.get('anything') is None

    path.write_text('[1, 2]', encoding='utf-8')
    assert store.get('anything') is None

    store.set('key', 'value')
    assert json.loads(path.read_text(encoding='utf-8')) == {'key': 'value'}
