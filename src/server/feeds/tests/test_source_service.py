# -*- coding: utf-8 -*-
"""
订阅源与分组管理测试
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.orm import Session

from src.server.feeds.config import feeds_config
from src.server.feeds.errors import RSSValidationError
from src.server.feeds.models import FeedSource
from src.server.feeds.schemas import SourceQuery
from src.server.feeds.service import (
    add_source,
    assign_source_group,
    create_source_group,
    delete_source_group,
    get_source_groups,
    get_sources,
    remove_source,
    rename_source_group,
    restore_source,
    star_source,
    unstar_source,
)

TEST_USER_ID = "test-user"
OTHER_USER_ID = "other-user"


def test_presets_are_seeded_once(test_db_session: Session) -> None:
    """首次列出订阅源时创建预置源，之后不会重复创建。"""
    first = get_sources(test_db_session, TEST_USER_ID)
    second = get_sources(test_db_session, TEST_USER_ID)

    preset_routes = set(feeds_config.rss_preset_sources)
    assert {source.route for source in first} == preset_routes
    assert all(source.is_preset for source in first)
    assert len(second) == len(first)


def test_removed_preset_is_not_reseeded(test_db_session: Session) -> None:
    """软删除的预置源不会被重新创建。"""
    preset = get_sources(test_db_session, TEST_USER_ID)[0]
    remove_source(test_db_session, TEST_USER_ID, preset.id)

    active = get_sources(test_db_session, TEST_USER_ID)
    everything = get_sources(
        test_db_session, TEST_USER_ID, SourceQuery(include_removed=True)
    )

    assert preset.route not in {source.route for source in active}
    assert [source.route for source in everything].count(preset.route) == 1


def test_add_source_rejects_duplicate_route(test_db_session: Session) -> None:
    """同一用户重复添加相同路由应报校验错误。"""
    created = add_source(test_db_session, TEST_USER_ID, "/my/custom-feed", "My Custom Feed")
    assert created.display_name == "My Custom Feed"
    assert created.enabled is True
    assert created.is_preset is False

    with pytest.raises(RSSValidationError):
        add_source(test_db_session, TEST_USER_ID, "/my/custom-feed", "Dup")


def test_add_source_rejects_duplicate_even_when_removed(test_db_session: Session) -> None:
    """已软删除的路由同样不能重复添加。"""
    created = add_source(test_db_session, TEST_USER_ID, "/my/removed-feed")
    remove_source(test_db_session, TEST_USER_ID, created.id)

    with pytest.raises(RSSValidationError):
        add_source(test_db_session, TEST_USER_ID, "/my/removed-feed")


def test_same_route_allowed_for_different_users(test_db_session: Session) -> None:
    """路由唯一性按用户区分。"""
    add_source(test_db_session, TEST_USER_ID, "/shared/route")
    other = add_source(test_db_session, OTHER_USER_ID, "/shared/route")
    assert other.user_id == OTHER_USER_ID


def test_add_source_trims_and_derives_display_name(test_db_session: Session) -> None:
    """显示名称留空时自动推导。"""
    from_url = add_source(
        test_db_session,
        TEST_USER_ID,
        "  https://www.example.com/feed/abc.xml  ",
        "   ",
    )
    from_route = add_source(test_db_session, TEST_USER_ID, "/github/trending/weekly")

    assert from_url.route == "https://www.example.com/feed/abc.xml"
    assert from_url.display_name == "example.com"
    assert from_route.display_name == "github / trending / weekly"


@pytest.mark.parametrize(
    "route",
    ["", "   ", "not a route", "ftp://example.com/feed", "/bad route/with space", "//double"],
)
def test_add_source_rejects_invalid_route(test_db_session: Session, route: str) -> None:
    """空路由、非法路由与非 http(s) 链接被拒绝。"""
    with pytest.raises(RSSValidationError):
        add_source(test_db_session, TEST_USER_ID, route)


def test_add_source_validates_group_owner(test_db_session: Session) -> None:
    """指定的分组不存在或属于其他用户时报错。"""
    foreign_group = create_source_group(test_db_session, OTHER_USER_ID, "别人的分组")

    with pytest.raises(RSSValidationError):
        add_source(test_db_session, TEST_USER_ID, "/a/b", group_id="missing")
    with pytest.raises(RSSValidationError):
        add_source(test_db_session, TEST_USER_ID, "/a/b", group_id=foreign_group.id)

    own_group = create_source_group(test_db_session, TEST_USER_ID, "Tech")
    created = add_source(test_db_session, TEST_USER_ID, "/a/b", group_id=own_group.id)
    assert created.group_id == own_group.id


def test_soft_remove_and_restore(test_db_session: Session) -> None:
    """软删除后不出现在活跃列表中，恢复后重新出现。"""
    source = get_sources(test_db_session, TEST_USER_ID)[0]

    removed = remove_source(test_db_session, TEST_USER_ID, source.id)
    assert removed is not None
    assert removed.deleted_at is not None
    assert removed.enabled is False
    assert source.id not in {item.id for item in get_sources(test_db_session, TEST_USER_ID)}

    with_removed = get_sources(
        test_db_session, TEST_USER_ID, SourceQuery(include_removed=True)
    )
    assert next(item for item in with_removed if item.id == source.id).deleted_at is not None

    restored = restore_source(test_db_session, TEST_USER_ID, source.id)
    assert restored is not None
    assert restored.deleted_at is None
    assert restored.enabled is True
    assert source.id in {item.id for item in get_sources(test_db_session, TEST_USER_ID)}


def test_remove_unknown_source_returns_none(test_db_session: Session) -> None:
    assert remove_source(test_db_session, TEST_USER_ID, "missing") is None
    assert restore_source(test_db_session, TEST_USER_ID, "missing") is None


def test_remove_and_restore_reject_foreign_user(test_db_session: Session) -> None:
    """其他用户的订阅源视为不存在，且状态不被修改。"""
    source = add_source(test_db_session, TEST_USER_ID, "/mine/private")

    assert remove_source(test_db_session, OTHER_USER_ID, source.id) is None
    assert source.id in {item.id for item in get_sources(test_db_session, TEST_USER_ID)}

    remove_source(test_db_session, TEST_USER_ID, source.id)
    assert restore_source(test_db_session, OTHER_USER_ID, source.id) is None
    assert source.id not in {item.id for item in get_sources(test_db_session, TEST_USER_ID)}


def test_star_and_unstar_filtering(test_db_session: Session) -> None:
    """星标筛选，favorites 分区等同于仅星标。"""
    source = get_sources(test_db_session, TEST_USER_ID)[0]

    star_source(test_db_session, TEST_USER_ID, source.id)
    starred = get_sources(test_db_session, TEST_USER_ID, SourceQuery(only_starred=True))
    favorites = get_sources(test_db_session, TEST_USER_ID, SourceQuery(section="favorites"))
    assert [item.id for item in starred] == [source.id]
    assert [item.id for item in favorites] == [source.id]

    unstar_source(test_db_session, TEST_USER_ID, source.id)
    assert get_sources(test_db_session, TEST_USER_ID, SourceQuery(only_starred=True)) == []


def test_star_rejects_foreign_source(test_db_session: Session) -> None:
    source = get_sources(test_db_session, TEST_USER_ID)[0]
    with pytest.raises(RSSValidationError):
        star_source(test_db_session, OTHER_USER_ID, source.id)


def test_group_filter_is_three_valued(test_db_session: Session) -> None:
    """未设置分组条件不过滤；None 表示未分组；指定 ID 表示该分组。"""
    sources = get_sources(test_db_session, TEST_USER_ID)
    group = create_source_group(test_db_session, TEST_USER_ID, "Tech")
    assign_source_group(test_db_session, TEST_USER_ID, sources[0].id, group.id)

    everything = get_sources(test_db_session, TEST_USER_ID, SourceQuery())
    grouped = get_sources(test_db_session, TEST_USER_ID, SourceQuery(group_id=group.id))
    ungrouped = get_sources(test_db_session, TEST_USER_ID, SourceQuery(group_id=None))

    assert len(everything) == len(sources)
    assert [item.id for item in grouped] == [sources[0].id]
    assert sources[0].id not in {item.id for item in ungrouped}
    assert len(ungrouped) == len(sources) - 1


def test_group_name_validation(test_db_session: Session) -> None:
    """分组名称不能为空，且同一用户下忽略大小写唯一。"""
    tech = create_source_group(test_db_session, TEST_USER_ID, "  Tech  ")
    assert tech.name == "Tech"

    with pytest.raises(RSSValidationError):
        create_source_group(test_db_session, TEST_USER_ID, "   ")
    with pytest.raises(RSSValidationError):
        create_source_group(test_db_session, TEST_USER_ID, "tech")

    # 其他用户可以使用相同名称
    create_source_group(test_db_session, OTHER_USER_ID, "TECH")

    news = create_source_group(test_db_session, TEST_USER_ID, "News")
    with pytest.raises(RSSValidationError):
        rename_source_group(test_db_session, TEST_USER_ID, news.id, "TECH")

    # 改为自身名称的不同大小写是允许的
    renamed = rename_source_group(test_db_session, TEST_USER_ID, news.id, "NEWS")
    assert renamed.name == "NEWS"

    names = [group.name for group in get_source_groups(test_db_session, TEST_USER_ID)]
    assert names == ["NEWS", "Tech"]


def test_rename_foreign_group_rejected(test_db_session: Session) -> None:
    foreign = create_source_group(test_db_session, OTHER_USER_ID, "Other")
    with pytest.raises(RSSValidationError):
        rename_source_group(test_db_session, TEST_USER_ID, foreign.id, "Mine")


def test_delete_group_ungroups_sources(test_db_session: Session) -> None:
    """删除分组时订阅源回落为未分组，而不是被删除。"""
    group = create_source_group(test_db_session, TEST_USER_ID, "Tech")
    source = get_sources(test_db_session, TEST_USER_ID)[0]
    assign_source_group(test_db_session, TEST_USER_ID, source.id, group.id)

    grouped = get_sources(test_db_session, TEST_USER_ID, SourceQuery(group_id=group.id))
    assert source.id in {item.id for item in grouped}

    delete_source_group(test_db_session, TEST_USER_ID, group.id)

    ungrouped = get_sources(test_db_session, TEST_USER_ID, SourceQuery(group_id=None))
    assert source.id in {item.id for item in ungrouped}
    assert get_source_groups(test_db_session, TEST_USER_ID) == []
    with pytest.raises(RSSValidationError):
        delete_source_group(test_db_session, TEST_USER_ID, group.id)


def test_assign_group_validates_ownership(test_db_session: Session) -> None:
    source = get_sources(test_db_session, TEST_USER_ID)[0]
    foreign = create_source_group(test_db_session, OTHER_USER_ID, "Other")

    with pytest.raises(RSSValidationError):
        assign_source_group(test_db_session, TEST_USER_ID, source.id, foreign.id)
    with pytest.raises(RSSValidationError):
        assign_source_group(test_db_session, OTHER_USER_ID, source.id, None)

    group = create_source_group(test_db_session, TEST_USER_ID, "Mine")
    assigned = assign_source_group(test_db_session, TEST_USER_ID, source.id, group.id)
    assert assigned.group_id == group.id
    cleared = assign_source_group(test_db_session, TEST_USER_ID, source.id, None)
    assert cleared.group_id is None


def test_sources_sorted_by_activity_then_name(test_db_session: Session) -> None:
    """活跃度降序，活跃度相同时按名称升序。"""
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    rows = [
        FeedSource(
            user_id=TEST_USER_ID,
            route=f"/sort/{name.lower()}",
            display_name=name,
            created_at=base,
            updated_at=base,
        )
        for name in ("Charlie", "alpha", "Bravo", "Delta")
    ]
    rows[3].last_entry_at = base + timedelta(days=2)
    rows[2].last_success_at = base + timedelta(days=1)
    test_db_session.add_all(rows)
    test_db_session.commit()

    query = SourceQuery(include_removed=True)
    names = [
        source.display_name
        for source in get_sources(test_db_session, TEST_USER_ID, query)
        if source.route.startswith("/sort/")
    ]

    assert names == ["Delta", "Bravo", "alpha", "Charlie"]
