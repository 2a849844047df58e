# compare_bot/data_fetchers/vector_search.py
"""
Semantic product search over a persistent ChromaDB collection.

Products are embedded with a multilingual sentence-transformers model so that
Turkish and English queries land in the same space. The collection uses cosine
distance, and relevance is reported as ``1 - distance``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import chromadb
from chromadb.config import Settings

from ..errors import RetrievalError

log = logging.getLogger(__name__)

PRODUCTS_COLLECTION = "products"

SPEC_LABELS = {
    "ekran": "ekran",
    "islemci": "işlemci",
    "ram": "RAM",
    "depolama": "depolama",
    "kamera": "kamera",
    "batarya": "batarya",
    "agirlik": "ağırlık",
}


def build_description(specs: Dict[str, Any]) -> str:
    """'6.1 inç OLED ekran, A17 Pro işlemci, ...'"""
    return ", ".join(f"{value} {SPEC_LABELS.get(key, key)}" for key, value in (specs or {}).items())


def product_to_document(product: Dict[str, Any], description: str) -> str:
    return (
        f"{product['name']} | {product['brand']} | {product['category']} | "
        f"{product['price']} TL | {description}"
    )


class VectorProductSearch:
    def __init__(
        self,
        persist_directory: str,
        embedding_model: str,
        client: Optional[Any] = None,
        embedder: Optional[Any] = None,
    ):
        self.persist_directory = persist_directory
        self.embedding_model = embedding_model
        self._embedder = embedder

        self.chroma_client = client or chromadb.PersistentClient(
            path=self.persist_directory,
            settings=Settings(anonymized_telemetry=False),
        )
        self.collection = self.chroma_client.get_or_create_collection(
            name=PRODUCTS_COLLECTION,
            metadata={"hnsw:space": "cosine"},
        )

    def _get_embedder(self):
        if self._embedder is None:
            from sentence_transformers import SentenceTransformer
            log.info(f"EMBEDDER_LOAD | model={self.embedding_model}")
            self._embedder = SentenceTransformer(self.embedding_model)
        return self._embedder

    def embed(self, texts: List[str]) -> List[List[float]]:
        vectors = self._get_embedder().encode(texts, normalize_embeddings=True, convert_to_numpy=True)
        return vectors.tolist()

    def search(self, query: str, top_k: int = 15, score_threshold: float = 0.5) -> List[Dict[str, Any]]:
        """
        Return product payloads whose relevance clears ``score_threshold``,
        best match first. Each payload carries a ``relevance`` key.
        """
        try:
            [query_embedding] = self.embed([query])
            results = self.collection.query(
                query_embeddings=[query_embedding],
                n_results=top_k,
                include=["metadatas", "distances"],
            )
        except Exception as e:
            raise RetrievalError(f"vector search failed: {e}") from e

        products: List[Dict[str, Any]] = []
        if results["ids"] and results["ids"][0]:
            for i, _ in enumerate(results["ids"][0]):
                distance = results["distances"][0][i] if results["distances"] else 1.0
                relevance = 1 - distance
                if relevance < score_threshold:
                    continue
                payload = dict(results["metadatas"][0][i] or {})
                payload["relevance"] = round(relevance, 4)
                products.append(payload)

        names = ", ".join(p.get("name", "?") for p in products) or "no results"
        log.info(f"VECTOR_SEARCH | q='{query[:50]}' | hits={len(products)} | {names}")
        return products

    def index_catalog(self, products: List[Dict[str, Any]]) -> int:
        """Upsert catalog records into the collection. Returns the count indexed."""
        if not products:
            log.warning("INDEX_SKIP | no products to index")
            return 0

        documents, metadatas, ids = [], [], []
        for product in products:
            description = build_description(product.get("specs", {}))
            documents.append(product_to_document(product, description))
            metadatas.append({
                "sku": product["sku"],
                "name": product["name"],
                "brand": product["brand"],
                "price": product["price"],
                "category": product["category"],
                "description": description,
            })
            ids.append(product["sku"])

        self.collection.upsert(
            documents=documents,
            embeddings=self.embed(documents),
            metadatas=metadatas,
            ids=ids,
        )
        log.info(f"INDEX_DONE | collection={PRODUCTS_COLLECTION} | count={len(ids)}")
        return len(ids)

    def count(self) -> int:
        return self.collection.count()

    def clear(self) -> None:
        self.chroma_client.delete_collection(PRODUCTS_COLLECTION)
        self.collection = self.chroma_client.create_collection(
            name=PRODUCTS_COLLECTION,
            metadata={"hnsw:space": "cosine"},
        )
