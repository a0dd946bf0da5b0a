"""Integration/replay tests for namespaces."""

import pytest

from busmgmt.exceptions import RemoteError, ValidationError
from busmgmt.polling import InstantClock, PollState
from busmgmt.schemas import NamespaceStatus
from busmgmt.testing import added_namespaces


@pytest.mark.asyncio
async def test_list_namespaces_includes_new_namespace(harness, db):
    before = await db.namespaces.all()
    name = harness.new_name()
    region = "West US"

    await db.namespaces.create(name, region)

    added = added_namespaces(before, await db.namespaces.all())
    assert len(added) == 1
    assert added[0].name == name
    assert added[0].region == region


@pytest.mark.asyncio
async def test_get_namespace_returns_definition(harness, db):
    name = harness.new_name()
    region = "West US"
    await db.namespaces.create(name, region)

    namespace = await db.namespaces.get(name)
    assert namespace.name == name
    assert namespace.region == region


@pytest.mark.asyncio
async def test_create_namespace_invalid_name(db):
    with pytest.raises(ValidationError, match="must start with a letter"):
        await db.namespaces.create("!notValid$", "West US")


@pytest.mark.asyncio
async def test_create_namespace_succeeds(harness, db):
    name = harness.new_name()
    region = "South Central US"

    namespace = await db.namespaces.create(name, region)
    assert namespace.name == name
    assert namespace.region == region
    assert namespace.status is NamespaceStatus.ACTIVATING


@pytest.mark.asyncio
async def test_delete_namespace_invalid_name(db):
    with pytest.raises(ValidationError, match="must start with a letter"):
        await db.namespaces.delete("!NotValid$")


@pytest.mark.asyncio
async def test_delete_namespace_after_activation(harness, db):
    name = harness.new_name()
    region = "West US"
    created = await db.namespaces.create(name, region)

    poller = db.activation_poller()
    activated = await poller.wait(name, current=created)
    assert poller.state is PollState.SETTLED
    assert activated.status is NamespaceStatus.ACTIVE
    assert activated.region == region
    if not harness.is_recording and harness.is_mocked:
        assert isinstance(poller.clock, InstantClock)
        assert poller.clock.requested == [2.0, 2.0, 5.0]

    await db.namespaces.delete(name)

    with pytest.raises(RemoteError) as exc:
        await db.namespaces.get(name)
    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_get_regions(db):
    regions = await db.regions.all()
    assert len(regions) > 0
    for region in regions:
        assert region.code
        assert region.full_name


@pytest.mark.asyncio
async def test_verify_namespace_malformed(db):
    with pytest.raises(ValidationError, match="must start with a letter"):
        await db.namespaces.verify("%$!@%^!")


@pytest.mark.asyncio
async def test_verify_namespace_available(harness, db):
    # No namespace is created under this name, so there is nothing to clean up.
    name = harness.new_name(track=False)

    assert await db.namespaces.verify(name) is True
    assert name not in [ns.name for ns in await db.namespaces.all()]
    assert harness.tracked == []
