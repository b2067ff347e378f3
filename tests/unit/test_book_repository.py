"""
Unit tests for book storage and the listing query.
"""

import pytest

from bookshelf.storage.book_repository import BookRepository, BookQuery, MAX_PAGE, escape_like
from bookshelf.storage.shelf_repository import ShelfRepository


class TestBookQuery:
    """Tests for listing parameter normalization."""

    def test_defaults(self):
        query = BookQuery()

        assert query.page == 1
        assert query.limit == 20
        assert query.sort == "recently_added"
        assert query.offset == 0

    @pytest.mark.parametrize("limit,expected", [(0, 20), (-5, 1), (1, 1), (100, 100), (5000, 100)])
    def test_limit_clamped(self, limit, expected):
        assert BookQuery(limit=limit).limit == expected

    def test_page_clamped(self):
        assert BookQuery(page=-3).page == 1
        assert BookQuery(page=3, limit=10).offset == 20

    def test_page_upper_bound_keeps_offset_in_range(self):
        query = BookQuery(page=10 ** 20, limit=100)

        assert query.page == MAX_PAGE
        assert query.offset <= 2 ** 63 - 1

    def test_blank_text_filters_ignored(self):
        query = BookQuery(search="   ", tag="")

        assert query.search is None
        assert query.tag is None

    def test_unknown_sort(self):
        with pytest.raises(ValueError):
            BookQuery(sort="popularity")

    def test_unknown_status(self):
        with pytest.raises(ValueError):
            BookQuery(status="lost")

    def test_escape_like(self):
        assert escape_like("100%_\\") == "100\\%\\_\\\\"


@pytest.mark.asyncio
class TestBookRepository:
    """Tests for book storage and the listing query."""

    async def test_create_places_on_default_shelf(self, db_session, owner, library):
        repo = BookRepository(db_session)
        shelves = {s.name: s.id for s in await ShelfRepository(db_session).list_shelves(owner.id)}

        dune, beloved, wizard, neuromancer = library
        assert await repo.shelf_ids(dune.id) == [shelves["Completed"]]
        assert await repo.shelf_ids(beloved.id) == [shelves["Reading"]]
        assert await repo.shelf_ids(wizard.id) == [shelves["To Read"]]
        assert await repo.shelf_ids(neuromancer.id) == []

    async def test_get_is_owner_scoped(self, db_session, owner, stranger, library):
        repo = BookRepository(db_session)

        assert (await repo.get(owner.id, library[0].id)).title == "Dune"
        assert await repo.get(stranger.id, library[0].id) is None

    async def test_list_is_owner_scoped(self, db_session, owner, stranger, library):
        books, total = await BookRepository(db_session).list_books(stranger.id, BookQuery())

        assert books == []
        assert total == 0

    async def test_list_paginates(self, db_session, owner, library):
        repo = BookRepository(db_session)

        first, total = await repo.list_books(owner.id, BookQuery(limit=3, sort="title"))
        second, _ = await repo.list_books(owner.id, BookQuery(limit=3, page=2, sort="title"))

        assert total == 4
        assert [b.title for b in first] == ["A Wizard of Earthsea", "Beloved", "Dune"]
        assert [b.title for b in second] == ["Neuromancer"]

    async def test_filters_are_combined(self, db_session, owner, library):
        books, total = await BookRepository(db_session).list_books(
            owner.id,
            BookQuery(search="science", tag="classic"),
        )

        assert [b.title for b in books] == ["Dune"]
        assert total == 1

    async def test_tag_matches_whole_element(self, db_session, owner, library):
        repo = BookRepository(db_session)

        books, _ = await repo.list_books(owner.id, BookQuery(tag="sci"))
        assert [b.title for b in books] == ["Neuromancer"]

        books, _ = await repo.list_books(owner.id, BookQuery(tag="sci-fi"))
        assert [b.title for b in books] == ["Dune"]

    async def test_shelf_filter(self, db_session, owner, library):
        shelf_repo = ShelfRepository(db_session)
        shelf = await shelf_repo.create(owner.id, "Favorites")
        await shelf_repo.add_book(shelf.id, library[3].id)
        await db_session.commit()

        books, _ = await BookRepository(db_session).list_books(owner.id, BookQuery(shelf_id=shelf.id))

        assert [b.title for b in books] == ["Neuromancer"]

    async def test_status_counts(self, db_session, owner, library):
        counts = await BookRepository(db_session).status_counts(owner.id, BookQuery(status="reading"))

        assert counts == {"to_read": 1, "reading": 1, "completed": 1, "dropped": 1}

    async def test_status_counts_include_zeroes(self, db_session, stranger):
        counts = await BookRepository(db_session).status_counts(stranger.id, BookQuery())

        assert counts == {"to_read": 0, "reading": 0, "completed": 0, "dropped": 0}

    async def test_update_keeps_shelves(self, db_session, owner, library):
        repo = BookRepository(db_session)
        wizard = library[2]
        before = await repo.shelf_ids(wizard.id)

        updated = await repo.update(wizard, {"title": "A Wizard of Earthsea", "status": "completed"})
        await db_session.commit()

        assert updated.status == "completed"
        assert updated.authors == []
        assert await repo.shelf_ids(wizard.id) == before

    async def test_delete_removes_memberships(self, db_session, owner, stranger, library):
        repo = BookRepository(db_session)
        dune = library[0]

        assert not await repo.delete(stranger.id, dune.id)
        assert await repo.delete(owner.id, dune.id)
        await db_session.commit()

        assert await repo.get(owner.id, dune.id) is None
        assert await repo.shelf_ids(dune.id) == []
