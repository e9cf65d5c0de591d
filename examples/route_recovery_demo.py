#!/usr/bin/env python3
"""
Example: Route Recovery - Edit, Leave, Reopen, Save

This example builds a small flow for a GET route, navigates away without
saving, reopens the route from a fresh editor (as after a crash) and then
commits the recovered flow.
"""

import asyncio
import tempfile

from route_flow_editor import EntityRegistry, Route, RouteFlowEditor


def make_editor(registry: EntityRegistry, snapshot_dir: str) -> RouteFlowEditor:
    return RouteFlowEditor(registry=registry, snapshot_store="filesystem", snapshot_path=snapshot_dir)


async def main():
    """Edit a route flow, lose the editor, and recover the unsaved work."""

    registry = EntityRegistry(
        routes=[
            Route(id="r1", name="List users", method="GET", url="/users"),
            Route(id="r2", name="Create user", method="POST", url="/users"),
        ]
    )

    with tempfile.TemporaryDirectory() as snapshot_dir:
        editor = make_editor(registry, snapshot_dir)
        session = await editor.open_route("r1")
        url_node = session.graph.nodes[0]
        print(f"Opened r1 with default node: {url_node.data.label} {url_node.data.method} {url_node.data.path}")

        # Build auth -> find -> output behind the url node
        auth = await session.drop_node("auth", {"x": 300, "y": 100})
        find = await session.drop_node("db-find", {"x": 500, "y": 100})
        output = await session.drop_node("output", {"x": 700, "y": 100})
        await session.update_node_data(auth.id, {"authType": "jwt", "requiredRole": "admin"})
        await session.update_node_data(find.id, {"model": "User"})
        await session.update_node_data(output.id, {"statusCode": 200, "responseType": "json"})

        await session.connect(url_node.id, auth.id)
        await session.connect(auth.id, find.id)
        await session.connect(find.id, output.id)
        print(f"Built flow: {session.graph.node_count} nodes, {session.graph.edge_count} edges (dirty={session.dirty})")

        # A fresh editor stands in for a restarted process
        editor = make_editor(registry, snapshot_dir)

        other = await editor.open_route("r2")
        print(f"Opened r2: {other.graph.node_count} node, dirty={other.dirty}")
        await other.back()

        recovered = await editor.open_route("r1")
        print(
            f"Reopened r1: {recovered.graph.node_count} nodes, "
            f"recovered={recovered.recovered}, dirty={recovered.dirty}"
        )

        saved = await recovered.save()
        committed = registry.get_route("r1").flow_data
        print(f"Saved: {saved}; committed {len(committed.nodes)} nodes, {len(committed.edges)} edges")

        failures = recovered.operations.failures()
        print(f"Refused operations: {len(failures)}")


if __name__ == "__main__":
    asyncio.run(main())
