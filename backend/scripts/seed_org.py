#!/usr/bin/env python3
"""
Seed script: creates an organization with a few feeds and a shareable invite
link through the REST API.

Usage:
    python seed_org.py --subdomain grace
    python seed_org.py --subdomain hope --feeds 5 --base-url http://localhost:8000
"""
import argparse
import sys

import httpx

FEED_NAMES = ["Announcements", "Prayer Requests", "Youth Group", "Worship Team", "Small Groups"]


def create_org(client: httpx.Client, args) -> dict:
    resp = client.post(
        "/api/organizations/",
        json={
            "name": args.name,
            "subdomain": args.subdomain,
            "admin_name": args.admin_name,
            "admin_email": args.admin_email,
        },
    )
    if resp.status_code == 409:
        print(f"Subdomain {args.subdomain} is already taken")
        sys.exit(1)
    resp.raise_for_status()
    return resp.json()


def create_feeds(client: httpx.Client, org_id: str, count: int) -> list[dict]:
    created = []
    for i, name in enumerate(FEED_NAMES[:count], start=1):
        resp = client.post(
            f"/api/orgs/{org_id}/feeds/",
            json={
                "name": name,
                "privacy": "public" if i == 1 else "open",
                "member_permissions": [] if i == 1 else ["post", "message"],
            },
        )
        if resp.status_code == 201:
            created.append(resp.json())
            print(f"  [{i}/{count}] Feed created: {name}")
        else:
            print(f"  [{i}/{count}] ERROR for {name}: {resp.status_code} - {resp.text}")
    return created


def main():
    parser = argparse.ArgumentParser(description="Creates a demo organization in ChurchThreads")
    parser.add_argument("--subdomain", "-s", type=str, required=True)
    parser.add_argument("--name", type=str, default="Grace Community Church")
    parser.add_argument("--admin-name", type=str, default="Pastor Admin")
    parser.add_argument("--admin-email", type=str, default="admin@example.org")
    parser.add_argument(
        "--feeds", "-n",
        type=int,
        default=3,
        help=f"Number of feeds to create (max {len(FEED_NAMES)}, default: 3)",
    )
    parser.add_argument(
        "--base-url", "-u",
        type=str,
        default="http://localhost:8000",
        help="Backend URL (default: http://localhost:8000)",
    )
    args = parser.parse_args()

    print(f"Creating organization {args.subdomain} on {args.base_url} ...")
    with httpx.Client(base_url=args.base_url, timeout=30.0) as client:
        data = create_org(client, args)
        org = data["organization"]
        client.headers["Authorization"] = f"Bearer {data['access_token']}"

        feeds = create_feeds(client, org["id"], min(args.feeds, len(FEED_NAMES)))

        resp = client.post(
            f"/api/orgs/{org['id']}/invites/",
            json={"type": "link", "feeds": [f["id"] for f in feeds]},
        )
        resp.raise_for_status()
        invite = resp.json()

    print()
    print(f"Done: {org['name']} ({org['host']}) with {len(feeds)} feeds.")
    print(f"  Admin token: {data['access_token']}")
    print(f"  Invite link: https://{org['host']}/register?token={invite['token']}")


if __name__ == "__main__":
    main()
