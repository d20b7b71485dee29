# Prediction cache tests
import json

import pytest
import redis
from unittest.mock import Mock, patch

from gradecut.services.cache import PredictionCache, CacheError, create_redis_client, create_prediction_cache


class TestPredictionCache:

    def setup_method(self):
        self.redis = Mock()
        self.cache = PredictionCache(self.redis, ttl=60)

    def test_key_format(self):
        assert self.cache._make_key(["refined", "exam-1", "u1"]) == "gradecut:exam:exam-1:refined:u1"

    def test_long_keys_are_hashed(self):
        key = self.cache._make_key(["refined", "e" * 300, "u1"])
        assert key.startswith("gradecut:hash:")
        assert len(key) < 60

    def test_cache_hit(self):
        self.redis.get.return_value = json.dumps({'user_estimated_grade': 2})
        assert self.cache.get_refined_prediction("exam-1", "u1") == {'user_estimated_grade': 2}
        self.redis.get.assert_called_once_with("gradecut:exam:exam-1:refined:u1")

    def test_cache_miss(self):
        self.redis.get.return_value = None
        assert self.cache.get_refined_prediction("exam-1", "u1") is None

    def test_redis_failure_is_a_miss(self):
        self.redis.get.side_effect = redis.ConnectionError("down")
        assert self.cache.get_refined_prediction("exam-1", "u1") is None

    def test_corrupted_entry_is_a_miss(self):
        self.redis.get.return_value = "{not json"
        assert self.cache.get_refined_prediction("exam-1", "u1") is None

    def test_set(self):
        self.redis.setex.return_value = True
        assert self.cache.set_refined_prediction("exam-1", "u1", {'grade': 3})

        key, ttl, payload = self.redis.setex.call_args[0]
        assert key == "gradecut:exam:exam-1:refined:u1"
        assert ttl == 60
        assert json.loads(payload) == {'grade': 3}

    def test_set_failure(self):
        self.redis.setex.side_effect = redis.TimeoutError("slow")
        assert not self.cache.set_refined_prediction("exam-1", "u1", {'grade': 3})

    def test_invalidate_exam(self):
        self.redis.scan_iter.return_value = iter(["gradecut:exam:exam-1:refined:u1", "gradecut:exam:exam-1:refined:u2"])
        self.redis.delete.return_value = 2

        assert self.cache.invalidate_exam("exam-1") == 2
        self.redis.scan_iter.assert_called_once_with(match="gradecut:exam:exam-1:*")
        self.redis.delete.assert_called_once_with("gradecut:exam:exam-1:refined:u1", "gradecut:exam:exam-1:refined:u2")

    def test_invalidate_empty_exam(self):
        self.redis.scan_iter.return_value = iter([])
        assert self.cache.invalidate_exam("exam-1") == 0
        self.redis.delete.assert_not_called()

    def test_integrated_entry(self):
        self.redis.setex.return_value = True
        assert self.cache.set_integrated_prediction("exam-1", {"is_simulated": True})
        assert self.redis.setex.call_args[0][0] == "gradecut:exam:exam-1:integrated"

    def test_long_user_id_is_hashed(self):
        self.redis.get.return_value = None
        self.cache.get_refined_prediction("exam-1", "u" * 100)
        key = self.redis.get.call_args[0][0]
        assert key.startswith("gradecut:exam:exam-1:refined:")
        assert len(key) < 80

    def test_glob_characters_in_exam_id_are_escaped(self):
        self.redis.scan_iter.return_value = iter([])
        self.cache.invalidate_exam("exam[1]*")
        self.redis.scan_iter.assert_called_once_with(match="gradecut:exam:exam\\[1\\]\\*:*")


class TestPredictionCacheStore:

    def test_invalidate_drops_every_entry_of_the_exam(self, memory_redis):
        cache = PredictionCache(memory_redis, ttl=60)
        cache.set_refined_prediction("exam-1", "u1", {"grade": 1})
        cache.set_refined_prediction("exam-1", "u2", {"grade": 2})
        cache.set_integrated_prediction("exam-1", {"is_simulated": True})
        cache.set_refined_prediction("exam-2", "u1", {"grade": 3})

        assert cache.invalidate_exam("exam-1") == 3
        assert cache.get_refined_prediction("exam-1", "u1") is None
        assert cache.get_refined_prediction("exam-2", "u1") == {"grade": 3}

    def test_invalidate_long_exam_id(self, memory_redis):
        cache = PredictionCache(memory_redis, ttl=60)
        exam_id = "e" * 250
        cache.set_refined_prediction(exam_id, "u1", {"grade": 1})
        cache.set_integrated_prediction(exam_id, {"is_simulated": True})

        assert cache.invalidate_exam(exam_id) == 2
        assert memory_redis.store == {}


class TestCacheFactory:

    def test_disabled_by_default(self):
        with patch('gradecut.services.cache.config.PREDICTION_CACHE_ENABLED', False):
            assert create_prediction_cache() is None

    def test_unreachable_redis(self):
        client = Mock()
        client.ping.side_effect = redis.ConnectionError("refused")
        with patch('gradecut.services.cache.redis.Redis', return_value=client):
            with pytest.raises(CacheError):
                create_redis_client()
            with patch('gradecut.services.cache.config.PREDICTION_CACHE_ENABLED', True):
                assert create_prediction_cache() is None

    def test_enabled_cache(self):
        client = Mock()
        with patch('gradecut.services.cache.redis.Redis', return_value=client), \
                patch('gradecut.services.cache.config.PREDICTION_CACHE_ENABLED', True):
            cache = create_prediction_cache()
        assert isinstance(cache, PredictionCache)
        assert cache.redis is client
