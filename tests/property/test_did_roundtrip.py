"""Property test: DID decoding and rendering.

Canonical ERC721 strings decode and re-render to themselves; legacy ``nft``
strings decode to the same DID as their canonical counterpart.
"""

from hypothesis import given, settings, strategies as st

from cloudevent.did import (
    MAX_CHAIN_ID,
    ERC721DID,
    decode_erc20_did,
    decode_erc721_did,
    decode_ethr_did,
)

chain_ids = st.integers(min_value=0, max_value=MAX_CHAIN_ID)
token_ids = st.integers(min_value=0, max_value=2**256)
addresses = st.binary(min_size=20, max_size=20).map(lambda b: "0x" + b.hex())


@given(chain_id=chain_ids, address=addresses, token_id=token_ids)
@settings(max_examples=200)
def test_canonical_erc721_is_fixed_point(chain_id, address, token_id):
    canonical = str(ERC721DID(chain_id=chain_id, contract_address=address, token_id=token_id))
    assert str(decode_erc721_did(canonical)) == canonical


@given(chain_id=chain_ids, address=addresses, token_id=token_ids)
@settings(max_examples=200)
def test_legacy_decodes_to_canonical(chain_id, address, token_id):
    legacy = f"did:nft:{chain_id}:{address}_{token_id}"
    did = decode_erc721_did(legacy)
    assert did.token_id == token_id
    assert did.chain_id == chain_id
    assert did.contract_address.lower() == address
    assert str(did) != legacy
    assert str(did).startswith(f"did:erc721:{chain_id}:")


@given(chain_id=chain_ids, address=addresses)
@settings(max_examples=100)
def test_address_dids_round_trip(chain_id, address):
    ethr = decode_ethr_did(f"did:ethr:{chain_id}:{address}")
    assert decode_ethr_did(str(ethr)) == ethr

    erc20 = decode_erc20_did(f"did:erc20:{chain_id}:{address}")
    assert decode_erc20_did(str(erc20)) == erc20
    assert erc20.contract_address.lower() == address
