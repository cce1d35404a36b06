import tempfile
import unittest
from pathlib import Path

from application.services.lore_repository import LoreRepository
from infrastructure.config import ContainerConfig, _resolve_model_reference, build_default_container
from infrastructure.embedding.mean_word_hash_embedder import MeanWordHashEmbedder
from infrastructure.storage.in_memory_vector_index import InMemoryVectorIndex


class TestModelResolution(unittest.TestCase):
    def test_resolves_model_from_models_dir(self):
        with tempfile.TemporaryDirectory() as tmp:
            model_ref = "sentence-transformers/all-MiniLM-L6-v2"
            model_path = Path(tmp) / model_ref
            model_path.mkdir(parents=True)
            cfg = ContainerConfig(models_dir=tmp)

            resolved = _resolve_model_reference(model_ref, cfg)

            self.assertEqual(resolved, str(model_path))

    def test_keeps_original_model_when_local_dir_missing(self):
        cfg = ContainerConfig(models_dir="/tmp/loresearch-not-existing")

        resolved = _resolve_model_reference("sentence-transformers/all-MiniLM-L6-v2", cfg)

        self.assertEqual(resolved, "sentence-transformers/all-MiniLM-L6-v2")


class TestConfigFromEnv(unittest.TestCase):
    def test_defaults(self):
        cfg = ContainerConfig.from_env({})

        self.assertEqual(cfg.vector_index, "chroma")
        self.assertEqual(cfg.embedder, "minilm")
        self.assertEqual(cfg.collection_name, "lore")
        self.assertEqual(cfg.data_root, "data")
        self.assertIsNone(cfg.chroma_url)
        self.assertIsNone(cfg.models_dir)

    def test_reads_overrides(self):
        cfg = ContainerConfig.from_env(
            {
                "LORESEARCH_VECTOR_INDEX": "HNSW",
                "LORESEARCH_EMBEDDER": "mean_word",
                "LORESEARCH_COLLECTION": "warhammer",
                "LORESEARCH_DATA_ROOT": "/srv/lore",
                "LORESEARCH_MODELS_DIR": "/srv/models",
                "LORESEARCH_DEVICE": "cuda",
            }
        )

        self.assertEqual(cfg.vector_index, "hnsw")
        self.assertEqual(cfg.embedder, "mean_word")
        self.assertEqual(cfg.collection_name, "warhammer")
        self.assertEqual(cfg.data_root, "/srv/lore")
        self.assertEqual(cfg.models_dir, "/srv/models")
        self.assertEqual(cfg.device, "cuda")

    def test_chroma_url_falls_back_to_chromadb_url(self):
        cfg = ContainerConfig.from_env({"CHROMADB_URL": "http://chroma:8000"})
        self.assertEqual(cfg.chroma_url, "http://chroma:8000")

        cfg = ContainerConfig.from_env(
            {"CHROMADB_URL": "http://chroma:8000", "LORESEARCH_CHROMA_URL": "http://localhost:9000"}
        )
        self.assertEqual(cfg.chroma_url, "http://localhost:9000")

    def test_rejects_unknown_backends(self):
        with self.assertRaises(ValueError):
            ContainerConfig.from_env({"LORESEARCH_VECTOR_INDEX": "faiss"})
        with self.assertRaises(ValueError):
            ContainerConfig.from_env({"LORESEARCH_EMBEDDER": "bert"})


class TestBuildContainer(unittest.TestCase):
    def test_builds_offline_stack_without_connecting(self):
        container = build_default_container(ContainerConfig(vector_index="memory", embedder="mean_word"))

        self.assertIsInstance(container.embedder, MeanWordHashEmbedder)
        self.assertIsInstance(container.vector_index, InMemoryVectorIndex)
        self.assertIsInstance(container.repository, LoreRepository)
        self.assertFalse(container.retrieval_service.is_ready())

    def test_unknown_backend_in_config(self):
        with self.assertRaises(ValueError):
            build_default_container(ContainerConfig(vector_index="faiss", embedder="mean_word"))  # type: ignore[arg-type]


if __name__ == "__main__":
    unittest.main()
