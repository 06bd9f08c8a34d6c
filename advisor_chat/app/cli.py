from __future__ import annotations

import argparse
import json
import logging
from dataclasses import replace
from pathlib import Path

from advisor_chat.app.settings import AppSettings
from advisor_chat.app.wiring import build_bundle, debug_meta
from advisor_chat.domain.advised import CONVERSATION_ID_KEY


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--cid", default="default")
    parser.add_argument("--stream", action="store_true", help="Print the answer as it is generated")
    parser.add_argument("--debug", action="store_true")

    parser.add_argument("--rag-store", default=None, help="Override rag store path")
    parser.add_argument("--rag-top-k", type=int, default=None)
    parser.add_argument("--query-requirement", default=None, help="Rewrite queries before retrieval")
    parser.add_argument("--memory-mode", choices=["prompt", "messages"], default=None)

    parser.add_argument("--ingest", nargs="+", default=None, help="Paths to ingest (txt/md/pdf)")
    parser.add_argument("--ingest-replace", action="store_true", help="Delete old chunks by source before ingest")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO, format="%(message)s")

    settings = AppSettings.from_env()

    rag = settings.rag
    if args.rag_store is not None:
        rag = replace(rag, rag_store_path=args.rag_store)
    if args.rag_top_k is not None:
        rag = replace(rag, rag_top_k=args.rag_top_k)
    if args.query_requirement is not None:
        rag = replace(rag, query_requirement=args.query_requirement)
    settings = replace(settings, rag=rag)
    if args.memory_mode is not None:
        settings = replace(settings, memory=replace(settings.memory, memory_mode=args.memory_mode))

    bundle = build_bundle(settings)

    if args.ingest is not None:
        if args.ingest_replace:
            for p in args.ingest:
                bundle.rag_store.delete_by_source(str(Path(p)))
        n = bundle.indexer.ingest_paths(args.ingest)
        print(f"Ingested chunks: {n}. Store size: {bundle.rag_store.count()}")
        return

    print(f"Conversation: {args.cid}")
    print("Type /exit to quit.")
    print("Memory: /memory | /forget\n")

    while True:
        user_text = input("you> ").strip()
        if not user_text:
            continue
        if user_text == "/exit":
            break

        if user_text == "/memory":
            history = bundle.chat_memory.get(args.cid)
            if not history:
                print("bot> (memory empty)\n")
            else:
                print("bot> memory:")
                for m in history:
                    print(f"  {m.role.upper()}: {m.content}")
                print()
            continue

        if user_text == "/forget":
            bundle.chat_memory.clear(args.cid)
            print("bot> memory cleared\n")
            continue

        request = bundle.client.prompt().user(user_text).advisors(
            lambda a: a.param(CONVERSATION_ID_KEY, args.cid)
        )

        if args.stream:
            resp = request.stream()
            print("bot> ", end="", flush=True)
            for piece in resp.content():
                print(piece, end="", flush=True)
            print("\n")
            advised, context = resp.request, resp.context
        else:
            out = request.call()
            print(f"bot> {out.content()}\n")
            advised, context = out.request, out.context

        if args.debug:
            print("debug> " + json.dumps(debug_meta(advised, context), ensure_ascii=False, indent=2) + "\n")


if __name__ == "__main__":
    main()
