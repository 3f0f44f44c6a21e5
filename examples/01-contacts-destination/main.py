"""
Contacts Destination Example

This example defines a small contacts-API destination:
1. Authentication fields and a credential test
2. A request extension that adds the bearer token to every request
3. An action that looks up a contact id (cached) before deleting it
4. An action built with the fluent ActionBuilder
5. A dynamic field with autocomplete

It then routes one event through the destination using an in-memory
partner API, so nothing leaves the process.

Run: python examples/01-contacts-destination/main.py
"""

import asyncio
import json

import httpx

from destkit import ActionDefinition, Authentication, Destination, DestinationDefinition, NoopContext
from destkit.actions import CachedRequestDefinition
from destkit.request import RequestFactory

API = "https://api.contacts.test/v3"

# =============================================================================
# Request Extensions
# =============================================================================


def bearer_auth(data):
    return {
        "headers": {"Authorization": f"Bearer {data.settings.get('apiKey', '')}"},
        "prefixUrl": f"{API}/",
    }


# =============================================================================
# Perform Functions
# =============================================================================


async def check_api_key(request, data):
    return await request.get("scopes")


async def find_contact_id(request, data):
    response = await request.post(
        "marketing/contacts/search",
        json={"query": f"email LIKE '{data.payload['email']}'"},
    )
    results = response.json().get("result", [])
    return results[0]["id"] if results else None


async def delete_contact(request, data):
    if data["contactId"] is None:
        return None
    return await request.delete("marketing/contacts", params={"ids": data["contactId"]})


async def list_options(request, data):
    response = await request.get("marketing/lists")
    return {
        "items": [{"label": item["name"], "value": item["id"]} for item in response.json()["result"]],
    }


def add_to_list(action):
    async def perform(request, data):
        return await request.put(
            "marketing/contacts",
            json={"list_ids": [data.payload["listId"]], "contacts": [{"email": data.payload["email"]}]},
        )

    return (
        action.describe(title="Add Contact To List", default_subscription='type = "identify"')
        .fields(
            {
                "email": {"type": "string", "required": True},
                "listId": {"type": "string", "dynamic": True, "required": True},
            }
        )
        .request(perform, name="perform")
        .autocomplete("listId", list_options)
    )


# =============================================================================
# Definition
# =============================================================================


destination = DestinationDefinition(
    name="Contacts",
    slug="contacts",
    description="Manage contacts and lists in a contacts API",
    authentication=Authentication(
        fields={"apiKey": {"type": "password", "label": "API Key", "required": True}},
        test_credentials=check_api_key,
    ),
    extend_request=[bearer_auth],
    actions={
        "deleteContact": ActionDefinition(
            title="Delete Contact",
            description="Delete a contact by email",
            default_subscription='type = "track" and event = "Account Deleted"',
            fields={"email": {"type": "string", "required": True}},
            cached_requests=[
                CachedRequestDefinition(
                    ttl=60,
                    key=lambda data: data.payload["email"],
                    value=find_contact_id,
                    as_="contactId",
                )
            ],
            perform=delete_contact,
        ),
        "addToList": add_to_list,
    },
)


# =============================================================================
# Main
# =============================================================================


def partner_api(request: httpx.Request) -> httpx.Response:
    """In-memory stand-in for the contacts API."""
    if request.url.path.endswith("/search"):
        return httpx.Response(200, json={"result": [{"id": "c-42", "email": "ada@example.com"}]})
    if request.url.path.endswith("/lists"):
        return httpx.Response(200, json={"result": [{"id": "l-1", "name": "Newsletter"}]})
    return httpx.Response(202, json={"job_id": "j-1"})


async def main():
    print("=" * 60)
    print("Contacts Destination Example")
    print("=" * 60)

    runtime = Destination(destination, requests=RequestFactory(transport=httpx.MockTransport(partner_api)))
    print(f"\nActions: {list(runtime.actions)}")
    for slug, action in runtime.actions.items():
        print(f"  {slug}: {action.step_names}")

    event = {
        "type": "track",
        "event": "Account Deleted",
        "userId": "user-1",
        "properties": {"email": "ada@example.com"},
    }
    settings = {
        "apiKey": "secret",
        "subscriptions": json.dumps(
            [
                {
                    "subscribe": 'type = "track" and event = "Account Deleted"',
                    "partnerAction": "deleteContact",
                    "mapping": {"email": {"@path": "$.properties.email"}},
                },
                {
                    "subscribe": 'type = "identify"',
                    "partnerAction": "addToList",
                },
            ]
        ),
    }

    context = NoopContext()
    results = await runtime.on_event(context, event, settings)

    print("\nResults:")
    for result in results:
        print(f"  {result.to_dict()}")

    print("\nInstrumentation:")
    for record in context.subscriptions:
        print(f"  {record.action}: {record.duration:.2f}ms settings={record.input.settings}")

    options = await runtime.autocomplete("addToList", "listId", {"apiKey": "secret"})
    print(f"\nList options: {options.to_dict()}")

    print("\n" + "=" * 60)
    print("Example complete!")


if __name__ == "__main__":
    asyncio.run(main())
