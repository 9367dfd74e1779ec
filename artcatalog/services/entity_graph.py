"""Foreign-key dependency graph between catalog tables.

Both the insertion order (restore, migration) and the deletion order (clear)
are derived from ``ENTITY_DEPENDENCIES`` so they cannot drift apart.
"""

from artcatalog.services.errors import EntityGraphError

# table -> tables it references by foreign key
ENTITY_DEPENDENCIES: dict[str, tuple[str, ...]] = {
    "series": (),
    "tags": (),
    "gallery_images": (),
    "artworks": ("series",),
    "digital_works": ("series",),
    "exhibitions": (),
    "sales": ("artworks", "digital_works"),
    "artwork_images": ("artworks", "gallery_images"),
    "digital_work_images": ("digital_works", "gallery_images"),
    "artwork_tags": ("artworks", "tags"),
    "digital_work_tags": ("digital_works", "tags"),
    "artwork_exhibitions": ("artworks", "exhibitions"),
    "digital_work_exhibitions": ("digital_works", "exhibitions"),
    "location_history": ("artworks",),
}


def topological_order(dependencies: dict[str, tuple[str, ...]]) -> list[str]:
    """Return the tables ordered so each one follows everything it references.

    Kahn's algorithm; among tables that are ready at the same time the one
    declared first wins, so the result is deterministic.

    Raises:
        EntityGraphError: if a dependency names an undeclared table or the
            graph contains a cycle.
    """
    for table, deps in dependencies.items():
        for dep in deps:
            if dep not in dependencies:
                raise EntityGraphError(
                    f"{table} depends on undeclared table {dep!r}"
                )

    remaining = {table: set(deps) for table, deps in dependencies.items()}
    order: list[str] = []

    while remaining:
        ready = [t for t in dependencies if t in remaining and not remaining[t]]
        if not ready:
            raise EntityGraphError(
                "Dependency cycle between: " + ", ".join(sorted(remaining))
            )
        table = ready[0]
        order.append(table)
        del remaining[table]
        for deps in remaining.values():
            deps.discard(table)

    return order


_INSERTION_ORDER: tuple[str, ...] = tuple(topological_order(ENTITY_DEPENDENCIES))


def insertion_order() -> list[str]:
    """Tables in an order where every referenced row is inserted first."""
    return list(_INSERTION_ORDER)


def deletion_order() -> list[str]:
    """Exact reverse of :func:`insertion_order`, safe for bulk deletes."""
    return list(reversed(_INSERTION_ORDER))
