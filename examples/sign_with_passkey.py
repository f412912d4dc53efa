"""Register a passkey account and sign a payload through the custody service.

The browser normally performs the WebAuthn ceremony and stamps the sign
request with the passkey. Here an API key pair stands in for both, which is
enough against a development organization with attestation checks disabled.
"""

import asyncio
import os
import sys

from passkey_custody import (
    ApiKeyStamper,
    ChallengeToken,
    CustodyClient,
    RegistrationOrchestrator,
    Settings,
    SigningProxy,
    verify_signature,
)


async def main(attestation: dict) -> None:
    settings = Settings.from_env()
    custody = CustodyClient(settings)
    orchestrator = RegistrationOrchestrator(
        settings=settings,
        challenges=ChallengeToken.from_settings(settings),
        custody=custody,
        attestation_verifier=lambda parsed, origin=None: None,
    )
    registration = await orchestrator.register(attestation)
    print(f"Solana address: {registration.public_key}")

    owner = ApiKeyStamper(os.environ["OWNER_PUBLIC_KEY"], os.environ["OWNER_PRIVATE_KEY"])
    proxy = SigningProxy(custody, stamper=owner)
    payload = os.urandom(32)
    signature = await proxy.sign(
        payload, registration.sub_organization_id, registration.private_key_id
    )
    print(f"Signature valid: {verify_signature(payload, signature, registration.public_key)}")


if __name__ == "__main__":
    import json

    with open(sys.argv[1], encoding="utf-8") as f:
        asyncio.run(main(json.load(f)))
