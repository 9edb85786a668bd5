"""Minimal demonstration of the two-phase pipeline."""

import asyncio

from chatmap_core.pipeline import RequestOrchestrator
from chatmap_core.pipeline.viewport import fit_bounds


async def main() -> None:
    orchestrator = RequestOrchestrator()
    orchestrator.subscribe(lambda e: print(e.delta, end="", flush=True) if e.kind == "text" else None)

    question = "从北京到上海的旅游路线"
    print("User:", question)
    turn = await orchestrator.submit(question).wait()
    print()
    print("State:", turn.state.value)
    state = orchestrator.map_store.state
    print("Task type:", state.task_type.value)
    for marker in state.markers:
        print(f"  - {marker.title} ({marker.latitude}, {marker.longitude})")
    if state.route:
        print("Route vertices:", len(state.route))
    print("Viewport:", fit_bounds(state))


if __name__ == "__main__":
    asyncio.run(main())
