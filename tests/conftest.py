"""Shared fixtures: settings, an in-memory custody service and a simulated passkey."""

import base64
import json
import os
import threading
import uuid

import pytest
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from nacl import signing

from passkey_custody.client.custody import CustodyClient
from passkey_custody.client.http import CustodyHttpClient
from passkey_custody.client.stamp import ApiKeyStamper, generate_api_key_pair
from passkey_custody.config import Settings
from passkey_custody.errors import CustodyRequestError
from passkey_custody.registration.orchestrator import RegistrationOrchestrator
from passkey_custody.security.challenge_token import ChallengeToken
from passkey_custody.signing.proxy import SigningProxy

BASE_URL = "https://custody.test"
PARENT_ORG = "org-parent"


def b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


class FakeCustodyService(CustodyHttpClient):
    """In-memory custody API.

    Stamps are verified for real (P-256 ECDSA over the body). Activities start
    PENDING and complete after ``pending_polls`` get_activity calls. Signing keys
    are real Ed25519 keys, so signatures verify.
    """

    def __init__(self, stamper, parent_public_key):
        super().__init__(BASE_URL, stamper)
        self.parent_public_key = parent_public_key
        self.pending_polls = 1
        self.passkeys = {}  # credentialId -> P-256 public key hex
        self.orgs = {}
        self.activities = {}
        self.requests = []
        self.fail_status = {}  # operation -> terminal status to report
        self.drop_result = set()  # operations completing without a result
        self.hide_owner = False
        self._lock = threading.Lock()

    # transport

    def send(self, signed):
        with self._lock:
            assert signed.url.startswith(BASE_URL)
            path = signed.url[len(BASE_URL):]
            body = json.loads(signed.body)
            stamper_key = self._verify_stamp(signed)
            self.requests.append((path, body, stamper_key))
            operation = path.rsplit("/", 1)[-1]
            if path.startswith("/public/v1/query/"):
                return getattr(self, f"_query_{operation}")(body, stamper_key)
            return self._submit(operation, body, stamper_key)

    def _verify_stamp(self, signed):
        if signed.stamp_header_name != "X-Stamp":
            raise CustodyRequestError("missing stamp", status_code=401)
        raw = signed.stamp_header_value
        stamp = json.loads(base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4)))
        assert stamp["scheme"] == "SIGNATURE_SCHEME_TK_API_P256"
        public_key = ec.EllipticCurvePublicKey.from_encoded_point(
            ec.SECP256R1(), bytes.fromhex(stamp["publicKey"])
        )
        try:
            public_key.verify(
                bytes.fromhex(stamp["signature"]),
                signed.body.encode("utf-8"),
                ec.ECDSA(hashes.SHA256()),
            )
        except InvalidSignature as err:
            raise CustodyRequestError("bad stamp", status_code=401) from err
        return stamp["publicKey"]

    # authorization

    def _user_credentials(self, user):
        creds = set(user["apiKeys"])
        creds.update(self.passkeys.get(c) for c in user["authenticators"])
        return creds

    def _can_read(self, org_id, key):
        if key == self.parent_public_key:
            return True
        org = self.orgs.get(org_id)
        return bool(org) and any(key in self._user_credentials(u) for u in org["users"])

    def _in_root_quorum(self, org_id, key):
        org = self.orgs[org_id]
        members = [u for u in org["users"] if u["userId"] in org["root_quorum"]["userIds"]]
        return any(key in self._user_credentials(u) for u in members)

    # activities

    def _new_activity(self, operation, body, result):
        activity_id = f"act-{uuid.uuid4().hex[:8]}"
        status = "ACTIVITY_STATUS_PENDING" if self.pending_polls else "ACTIVITY_STATUS_COMPLETED"
        final = self.fail_status.get(operation, "ACTIVITY_STATUS_COMPLETED")
        if operation in self.drop_result:
            result = {}
        activity = {
            "id": activity_id,
            "organizationId": body["organizationId"],
            "type": body["type"],
            "status": status if final == "ACTIVITY_STATUS_COMPLETED" else "ACTIVITY_STATUS_PENDING",
            "result": {},
        }
        self.activities[activity_id] = {
            "activity": activity,
            "polls_left": self.pending_polls,
            "final": final,
            "result": result,
        }
        if status == "ACTIVITY_STATUS_COMPLETED" and final == "ACTIVITY_STATUS_COMPLETED":
            activity["result"] = result
        return {"activity": dict(activity)}

    def _rejected(self, body):
        return {
            "activity": {
                "id": f"act-{uuid.uuid4().hex[:8]}",
                "organizationId": body["organizationId"],
                "type": body["type"],
                "status": "ACTIVITY_STATUS_REJECTED",
                "result": {},
            }
        }

    def _submit(self, operation, body, key):
        org_id = body["organizationId"]
        params = body["parameters"]

        if operation == "create_sub_organization":
            if org_id != PARENT_ORG or key != self.parent_public_key:
                raise CustodyRequestError("not authorized", status_code=401)
            sub_id = f"suborg-{uuid.uuid4().hex[:8]}"
            users = []
            for root in params["rootUsers"]:
                users.append(
                    {
                        "userId": f"user-{uuid.uuid4().hex[:8]}",
                        "userName": root["userName"],
                        "apiKeys": [k["publicKey"] for k in root["apiKeys"]],
                        "authenticators": [
                            a["attestation"]["credentialId"] for a in root["authenticators"]
                        ],
                    }
                )
            self.orgs[sub_id] = {
                "users": users,
                "root_quorum": {
                    "userIds": [u["userId"] for u in users],
                    "threshold": params["rootQuorumThreshold"],
                },
                "keys": {},
            }
            return self._new_activity(
                operation, body, {"createSubOrganizationResult": {"subOrganizationId": sub_id}}
            )

        if org_id not in self.orgs:
            raise CustodyRequestError("unknown organization", status_code=404)
        if not self._can_read(org_id, key):
            raise CustodyRequestError("not authorized", status_code=401)
        if not self._in_root_quorum(org_id, key):
            return self._rejected(body)

        org = self.orgs[org_id]
        if operation == "create_private_keys":
            requested = params["privateKeys"][0]
            assert requested["curve"] == "CURVE_ED25519"
            key_id = f"pk-{uuid.uuid4().hex[:8]}"
            org["keys"][key_id] = signing.SigningKey.generate()
            return self._new_activity(
                operation,
                body,
                {"createPrivateKeysResultV2": {"privateKeys": [{"privateKeyId": key_id}]}},
            )

        if operation == "update_root_quorum":
            org["root_quorum"] = {"userIds": list(params["userIds"]), "threshold": params["threshold"]}
            return self._new_activity(operation, body, {"updateRootQuorumResult": {}})

        if operation == "sign_raw_payload":
            assert params["encoding"] == "PAYLOAD_ENCODING_HEXADECIMAL"
            assert params["hashFunction"] == "HASH_FUNCTION_NOT_APPLICABLE"
            assert params["payload"] == params["payload"].lower()
            signer = org["keys"][params["privateKeyId"]]
            signature = signer.sign(bytes.fromhex(params["payload"])).signature
            return self._new_activity(
                operation,
                body,
                {
                    "signRawPayloadResult": {
                        "r": signature[:32].hex(),
                        "s": signature[32:].hex(),
                        "v": "00",
                    }
                },
            )

        raise CustodyRequestError(f"unknown operation {operation}", status_code=404)

    # queries

    def _query_get_activity(self, body, key):
        if not self._can_read(body["organizationId"], key):
            raise CustodyRequestError("not authorized", status_code=401)
        entry = self.activities[body["activityId"]]
        activity = entry["activity"]
        if entry["polls_left"] > 0:
            entry["polls_left"] -= 1
        if entry["polls_left"] == 0:
            activity["status"] = entry["final"]
            if entry["final"] == "ACTIVITY_STATUS_COMPLETED":
                activity["result"] = entry["result"]
        return {"activity": dict(activity)}

    def _query_get_private_key(self, body, key):
        org_id = body["organizationId"]
        if not self._can_read(org_id, key):
            raise CustodyRequestError("not authorized", status_code=401)
        signer = self.orgs[org_id]["keys"][body["privateKeyId"]]
        return {
            "privateKey": {
                "privateKeyId": body["privateKeyId"],
                "publicKey": signer.verify_key.encode().hex(),
            }
        }

    def _query_list_users(self, body, key):
        org_id = body["organizationId"]
        if not self._can_read(org_id, key):
            raise CustodyRequestError("not authorized", status_code=401)
        users = self.orgs[org_id]["users"]
        if self.hide_owner:
            users = [u for u in users if u["userName"] != "Passkey"]
        return {"users": [{"userId": u["userId"], "userName": u["userName"]} for u in users]}

    # helpers for assertions

    def root_quorum(self, org_id):
        return self.orgs[org_id]["root_quorum"]

    def user_id(self, org_id, user_name):
        return next(u["userId"] for u in self.orgs[org_id]["users"] if u["userName"] == user_name)


@pytest.fixture
def settings():
    public_key, private_key = generate_api_key_pair()
    return Settings(
        custody_base_url=BASE_URL,
        organization_id=PARENT_ORG,
        api_public_key=public_key,
        api_private_key=private_key,
        challenge_key=os.urandom(32).hex(),
        poll_interval=0.001,
        poll_timeout=2.0,
        rp_id="localhost",
        expected_origin="http://localhost:3000",
    )


@pytest.fixture
def api_stamper(settings):
    return ApiKeyStamper.from_settings(settings)


@pytest.fixture
def fake_custody(settings, api_stamper):
    return FakeCustodyService(api_stamper, settings.api_public_key)


@pytest.fixture
def custody(settings, fake_custody):
    return CustodyClient(settings, http=fake_custody)


@pytest.fixture
def challenges(settings):
    return ChallengeToken.from_settings(settings)


@pytest.fixture
def attestation_verifier():
    return lambda parsed, origin=None: None


@pytest.fixture
def orchestrator(settings, challenges, custody, attestation_verifier):
    return RegistrationOrchestrator(
        settings=settings,
        challenges=challenges,
        custody=custody,
        attestation_verifier=attestation_verifier,
    )


@pytest.fixture
def passkey_stamper(fake_custody):
    """A P-256 stamper standing in for the user's passkey, known to the fake service."""
    public_key, private_key = generate_api_key_pair()
    stamper = ApiKeyStamper(public_key, private_key)
    stamper.credential_id = b64url(os.urandom(16))
    fake_custody.passkeys[stamper.credential_id] = public_key
    return stamper


@pytest.fixture
def make_attestation(passkey_stamper):
    def _make(challenge, ceremony_type="webauthn.create", credential_id=None):
        client_data = {
            "type": ceremony_type,
            "challenge": challenge,
            "origin": "http://localhost:3000",
        }
        return {
            "credentialId": credential_id or passkey_stamper.credential_id,
            "clientDataJson": b64url(json.dumps(client_data).encode()),
            "attestationObject": b64url(b"\xa3cfmtdnone"),
            "transports": ["AUTHENTICATOR_TRANSPORT_INTERNAL"],
        }

    return _make


@pytest.fixture
def signing_proxy(custody, passkey_stamper):
    return SigningProxy(custody, stamper=passkey_stamper)
