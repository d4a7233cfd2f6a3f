import httpx
import pytest

from launchpad.chain.base import TokenMetadata
from launchpad.chain.clients.gateway import HttpNonFungibleToken
from launchpad.chain.registry import collaborator_registry
from launchpad.core.exceptions import CollaboratorError, InvalidConfig, InvalidNftTier, Unauthorized
from launchpad.models.ido import WhitelistMode
from launchpad.services.eligibility import NftProof, eligibility_gate, parse_nft_tier
from launchpad.services.sale_registry import sale_registry
from launchpad.services.tier_ledger import tier_ledger

from support import ADMIN, OWNER, make_ctx, start_sale


def tier_trait(value, trait_type="tier"):
    return {"attributes": [{"trait_type": "Rarity", "value": "gold"}, {"trait_type": trait_type, "value": value}]}


@pytest.fixture
async def gateway_nft():
    """Gateway-backed collection answering every request with ``gateway_nft.status``."""
    nft = HttpNonFungibleToken("http://gateway", "nft-contract")
    nft.status = 200

    def handler(request: httpx.Request) -> httpx.Response:
        if nft.status != 200:
            return httpx.Response(nft.status, json={"error": "denied"})
        if request.url.path.endswith("/owner"):
            return httpx.Response(200, json={"owner": request.url.params["viewer"]})
        return httpx.Response(200, json={"private": tier_trait("2")})

    nft._client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://gateway")
    collaborator_registry.register_nft(nft)
    yield nft
    await nft.close()


async def registry_admin():
    return await sale_registry.load_admin()


class TestWhitelist:
    """Private, shared and open sales; removal always wins."""

    async def test_private_sale_seeded_whitelist(self, registry_config):
        sale = await start_sale(whitelist_mode=WhitelistMode.PRIVATE, whitelist=["alice"])
        assert await eligibility_gate.in_whitelist("alice", sale.id)
        assert not await eligibility_gate.in_whitelist("bob", sale.id)

    async def test_removal_overrides_add(self, registry_config):
        sale = await start_sale(whitelist_mode=WhitelistMode.PRIVATE, whitelist=["alice"])
        admin = await registry_admin()

        assert await eligibility_gate.remove_from_whitelist(make_ctx(OWNER), admin, sale.id, ["alice"]) == 1
        assert not await eligibility_gate.in_whitelist("alice", sale.id)

        assert await eligibility_gate.add_to_whitelist(make_ctx(OWNER), admin, sale.id, ["alice"]) == 1
        assert await eligibility_gate.in_whitelist("alice", sale.id)

    async def test_add_is_idempotent(self, registry_config):
        sale = await start_sale(whitelist_mode=WhitelistMode.PRIVATE, whitelist=["alice"])
        admin = await registry_admin()
        changed = await eligibility_gate.add_to_whitelist(
            make_ctx(ADMIN), admin, sale.id, ["alice", "bob", "bob"]
        )
        assert changed == 1
        total, addresses = await eligibility_gate.whitelist(sale.id)
        assert total == 2
        assert addresses == ["alice", "bob"]

    async def test_shared_list(self, registry_config):
        admin = await registry_admin()
        await eligibility_gate.add_to_whitelist(make_ctx(ADMIN), admin, None, ["alice", "bob"])
        sale = await start_sale(whitelist_mode=WhitelistMode.SHARED)

        assert await eligibility_gate.in_whitelist("alice", sale.id)
        assert not await eligibility_gate.in_whitelist("carol", sale.id)

        await eligibility_gate.remove_from_whitelist(make_ctx(OWNER), admin, sale.id, ["bob"])
        assert not await eligibility_gate.in_whitelist("bob", sale.id)
        total, shared = await eligibility_gate.whitelist(None)
        assert (total, shared) == (2, ["alice", "bob"])

    async def test_open_sale_honours_removal(self, registry_config):
        sale = await start_sale()
        admin = await registry_admin()
        assert await eligibility_gate.in_whitelist("anyone", sale.id)
        await eligibility_gate.remove_from_whitelist(make_ctx(OWNER), admin, sale.id, ["anyone"])
        assert not await eligibility_gate.in_whitelist("anyone", sale.id)

    async def test_shared_list_is_admin_only(self, registry_config):
        with pytest.raises(Unauthorized):
            await eligibility_gate.add_to_whitelist(make_ctx(OWNER), await registry_admin(), None, ["alice"])

    async def test_sale_list_needs_owner_or_admin(self, registry_config):
        sale = await start_sale()
        with pytest.raises(Unauthorized):
            await eligibility_gate.add_to_whitelist(make_ctx("mallory"), await registry_admin(), sale.id, ["mallory"])

    async def test_empty_address_list(self, registry_config):
        with pytest.raises(InvalidConfig):
            await eligibility_gate.add_to_whitelist(make_ctx(ADMIN), await registry_admin(), None, [])


class TestNftTier:
    def test_private_metadata_preferred(self):
        metadata = TokenMetadata("nft-1", public=tier_trait("4"), private=tier_trait("2"))
        assert parse_nft_tier(metadata, 5) == 2

    def test_public_fallback_and_case_insensitive_trait(self):
        metadata = TokenMetadata("nft-1", public=tier_trait("3", trait_type="TIER"))
        assert parse_nft_tier(metadata, 5) == 3

    def test_extension_attributes(self):
        metadata = TokenMetadata("nft-1", private={"extension": tier_trait(1)})
        assert parse_nft_tier(metadata, 5) == 1

    @pytest.mark.parametrize("value", ["gold", "0", "6", ""])
    def test_bad_tier_values(self, value):
        with pytest.raises(InvalidNftTier):
            parse_nft_tier(TokenMetadata("nft-1", private=tier_trait(value)), 5)

    def test_missing_trait(self):
        with pytest.raises(InvalidNftTier):
            parse_nft_tier(TokenMetadata("nft-1", public={"attributes": []}), 5)

    async def test_foreign_nft_is_rejected(self, registry_config, fakes):
        fakes.nft.mint("nft-1", "alice", private=tier_trait("1"))
        with pytest.raises(InvalidNftTier):
            await eligibility_gate.nft_tier("bob", NftProof("nft-1", "key"), 5)

    async def test_gateway_collection(self, gateway_nft):
        assert await eligibility_gate.nft_tier("alice", NftProof("nft-1", "key"), 5) == 2

    @pytest.mark.parametrize("status", [401, 403])
    async def test_wrong_viewing_key(self, gateway_nft, status):
        gateway_nft.status = status
        with pytest.raises(InvalidNftTier, match="viewed"):
            await eligibility_gate.nft_tier("alice", NftProof("nft-1", "wrong"), 5)

    async def test_gateway_outage_is_not_a_tier_error(self, gateway_nft):
        gateway_nft.status = 503
        with pytest.raises(CollaboratorError) as exc:
            await eligibility_gate.nft_tier("alice", NftProof("nft-1", "key"), 5)
        assert not isinstance(exc.value, InvalidNftTier)

    async def test_collection_not_configured(self):
        collaborator_registry._nft = None
        with pytest.raises(InvalidNftTier, match="not enabled"):
            await eligibility_gate.nft_tier("alice", NftProof("nft-1", "key"), 5)

    async def test_effective_tier_takes_the_better_grade(self, registry_config, fakes):
        await tier_ledger.deposit(make_ctx("alice", 0, 500), await tier_ledger.load_admin())
        fakes.nft.mint("nft-1", "alice", private=tier_trait("3"))
        assert await eligibility_gate.effective_tier("alice", 5, NftProof("nft-1", "key")) == 2
        fakes.nft.mint("nft-2", "alice", private=tier_trait("1"))
        assert await eligibility_gate.effective_tier("alice", 5, NftProof("nft-2", "key")) == 1

    async def test_ungraded_maps_to_lowest_tier(self, registry_config):
        assert await eligibility_gate.effective_tier("nobody", 5) == 5
