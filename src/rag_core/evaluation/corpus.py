"""Reference documents backing the default evaluation cases."""

from __future__ import annotations

from datetime import datetime, timezone

from rag_core.models.domain import ChunkMetadata, RetrievedChunk


def _chunk(chunk_id: str, source: str, title: str, content: str, **meta) -> RetrievedChunk:
    return RetrievedChunk(
        id=chunk_id,
        content=content,
        source=source,
        score=0.0,
        metadata=ChunkMetadata(title=title, **meta),
    )


REFERENCE_CORPUS: tuple[RetrievedChunk, ...] = (
    _chunk(
        "geo_france",
        "atlas",
        "La France",
        "Paris est la capitale de la France. La ville est située sur la Seine, "
        "dans le nord du pays, et compte plus de deux millions d'habitants.",
        tags=("geographie",),
    ),
    _chunk(
        "cal_leap_year",
        "calendrier",
        "Années bissextiles",
        "Une année bissextile compte 366 jours au lieu de 365. Le jour supplémentaire "
        "est ajouté au mois de février, qui compte alors 29 jours.",
        tags=("calendrier",),
    ),
    _chunk(
        "cook_soft_egg",
        "cuisine",
        "Oeuf à la coque",
        "Pour faire cuire un œuf à la coque, plongez l'œuf dans l'eau bouillante. "
        "Laissez cuire trois minutes, puis retirez l'œuf et servez-le aussitôt avec "
        "des mouillettes.",
        tags=("cuisine",),
    ),
    _chunk(
        "energy_solar",
        "energie",
        "Énergie solaire",
        "L'énergie solaire est renouvelable et ne produit pas d'émissions en "
        "fonctionnement. Cependant, sa production est intermittente et dépend de "
        "l'ensoleillement, ce qui impose du stockage.",
        tags=("energie",),
    ),
    _chunk(
        "energy_nuclear",
        "energie",
        "Énergie nucléaire",
        "L'énergie nucléaire fournit une production pilotable et peu carbonée. "
        "Ses inconvénients sont la gestion des déchets radioactifs et le coût "
        "élevé de construction des centrales.",
        tags=("energie",),
    ),
    _chunk(
        "space_1969",
        "histoire",
        "Apollo 11",
        "En juillet 1969, la mission Apollo 11 a posé le premier équipage sur la Lune. "
        "Neil Armstrong a été le premier homme à marcher sur la surface lunaire.",
        tags=("histoire", "espace"),
        date="1969-07-20",
        timestamp=datetime(1969, 7, 20, tzinfo=timezone.utc),
    ),
    _chunk(
        "geo_fuji",
        "atlas",
        "Mont Fuji",
        "Le Mont Fuji est le plus haut sommet du Japon. Ce volcan se trouve sur "
        "l'île de Honshu, au sud-ouest de Tokyo.",
        tags=("geographie",),
    ),
    _chunk(
        "geo_japan",
        "atlas",
        "Le Japon",
        "Tokyo est la capitale du Japon. La ville est le centre politique et "
        "économique du pays.",
        tags=("geographie",),
    ),
)


def corpus_texts(chunks: tuple[RetrievedChunk, ...] = REFERENCE_CORPUS) -> dict[str, str]:
    return {c.id: c.content for c in chunks}
