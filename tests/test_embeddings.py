import os
import unittest
from unittest import mock

import numpy as np

from project_vectordb.config import Settings
from project_vectordb.embeddings import (
    EmbeddingFunction,
    OfflineEmbeddingFunction,
    OpenAIEmbeddingFunction,
    create_default_embedding_function,
)
from project_vectordb.errors import ConfigurationError, EmbeddingGenerationError


class OfflineEmbeddingTests(unittest.IsolatedAsyncioTestCase):
    async def test_deterministic_unit_vectors(self) -> None:
        embedder = OfflineEmbeddingFunction(dimensions=32)
        first = await embedder.generate("styling guide")
        second = await embedder.generate("styling guide")
        other = await embedder.generate("testing guide")

        self.assertEqual(first, second)
        self.assertNotEqual(first, other)
        self.assertEqual(len(first), 32)
        self.assertAlmostEqual(float(np.linalg.norm(first)), 1.0, places=6)

    def test_satisfies_protocol(self) -> None:
        self.assertIsInstance(OfflineEmbeddingFunction(8), EmbeddingFunction)

    def test_rejects_non_positive_dimensions(self) -> None:
        with self.assertRaises(ConfigurationError):
            OfflineEmbeddingFunction(0)


class OpenAIEmbeddingTests(unittest.IsolatedAsyncioTestCase):
    def _settings(self) -> Settings:
        with mock.patch.dict(os.environ, {}):
            os.environ.pop("OPENAI_API_KEY", None)
            return Settings()

    def test_missing_key_is_configuration_error(self) -> None:
        settings = self._settings()
        with self.assertRaises(ConfigurationError):
            OpenAIEmbeddingFunction(settings=settings)

    async def test_backend_failure_is_wrapped(self) -> None:
        embedder = OpenAIEmbeddingFunction(api_key="sk-test", settings=self._settings())
        embedder._client = mock.Mock(aembed_query=mock.AsyncMock(side_effect=RuntimeError("boom")))
        with self.assertRaises(EmbeddingGenerationError):
            await embedder.generate("hello")

    async def test_returns_backend_vector(self) -> None:
        embedder = OpenAIEmbeddingFunction(api_key="sk-test", settings=self._settings())
        embedder._client = mock.Mock(aembed_query=mock.AsyncMock(return_value=[0.1, 0.2]))
        vector = await embedder.generate("hello")
        self.assertEqual(vector, [0.1, 0.2])
        embedder._client.aembed_query.assert_awaited_once_with("hello")


class DefaultEmbeddingFactoryTests(unittest.TestCase):
    def test_offline_backend(self) -> None:
        with mock.patch.dict(os.environ, {"EMBEDDING_BACKEND": "offline", "EMBEDDING_DIM": "16"}):
            embedder = create_default_embedding_function(Settings())
        self.assertIsInstance(embedder, OfflineEmbeddingFunction)
        self.assertEqual(embedder.dimensions, 16)

    def test_unknown_backend(self) -> None:
        with mock.patch.dict(os.environ, {"EMBEDDING_BACKEND": "word2vec"}):
            with self.assertRaises(ConfigurationError):
                create_default_embedding_function(Settings())

    def test_openai_backend_requires_key(self) -> None:
        with mock.patch.dict(os.environ, {"EMBEDDING_BACKEND": "openai"}):
            os.environ.pop("OPENAI_API_KEY", None)
            with self.assertRaises(ConfigurationError):
                create_default_embedding_function(Settings())


if __name__ == "__main__":
    unittest.main()
