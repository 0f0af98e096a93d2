from __future__ import annotations

import argparse
import json
import os
import sys

from pydantic import ValidationError

from scb.api_models import PlanRequest, RenderRequest
from scb.assembler import heap_size_gb, node_total_memory_gib, render_jvm_options, write_rendered
from scb.errors import ConfigError
from scb.logging_config import setup_logging
from scb.provision import config_file_name, plan_from_request, render_from_request
from scb.topology import RoleCounts


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _add_topology_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--managers", type=int, default=0)
    p.add_argument("--data", type=int, default=0)
    p.add_argument("--ingest", type=int, default=0, help="Informational only")
    p.add_argument("--clients", type=int, default=0)
    p.add_argument("--ml", type=int, default=0)
    p.add_argument("--single-node", action="store_true")
    p.add_argument("--cpu-arch", default="x86_64", choices=["x86_64", "arm64"])
    p.add_argument("--data-instance-type")
    p.add_argument("--ml-instance-type")
    p.add_argument("--data-storage-gib", type=int, default=100)
    p.add_argument("--ml-storage-gib", type=int, default=100)
    p.add_argument("--secure", action="store_true", help="TLS listeners (443/80)")
    p.add_argument("--dashboards", action="store_true")


def _topology_fields(args: argparse.Namespace) -> dict:
    return {
        "roles": RoleCounts(
            manager_count=args.managers,
            data_count=args.data,
            ingest_count=args.ingest,
            client_count=args.clients,
            ml_count=args.ml,
        ),
        "single_node": args.single_node,
        "cpu_arch": args.cpu_arch,
        "data_instance_type": args.data_instance_type,
        "ml_instance_type": args.ml_instance_type,
        "data_storage_gib": args.data_storage_gib,
        "ml_storage_gib": args.ml_storage_gib,
        "secure": args.secure,
        "dashboards": args.dashboards,
    }


def _read_optional(path: str | None) -> str | None:
    if not path:
        return None
    with open(path, encoding="utf-8") as fh:
        return fh.read()


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Search Cluster Bootstrap CLI")
    sub = p.add_subparsers(dest="cmd", required=True)

    s_plan = sub.add_parser("plan", help="Print the topology plan as JSON")
    _add_topology_args(s_plan)

    s_render = sub.add_parser("render", help="Render per-role node configuration files")
    _add_topology_args(s_render)
    s_render.add_argument("--deployment", required=True)
    s_render.add_argument("--account", required=True)
    s_render.add_argument("--region", required=True)
    s_render.add_argument("--remote-store", action="store_true")
    s_render.add_argument("--remote-store-bucket")
    s_render.add_argument("--additional-config-file", help="Raw text appended verbatim to every node config")
    s_render.add_argument("--additional-dashboards-config-file")
    s_render.add_argument("--out-dir", required=True)

    s_jvm = sub.add_parser("jvm-options", help="Rewrite a node's jvm.options file in place")
    s_jvm.add_argument("--file", required=True)
    s_jvm.add_argument("--sys-props", help="Comma separated key=value pairs, each appended as -Dkey=value")
    s_jvm.add_argument("--auto-heap", action="store_true", help="Pin heap to half of memory (capped)")
    s_jvm.add_argument("--total-memory-gib", type=int, help="Defaults to this machine's memory")

    args = p.parse_args(argv)
    setup_logging("cli", level="WARNING")

    try:
        if args.cmd == "plan":
            _print(plan_from_request(PlanRequest(**_topology_fields(args))).to_dict())
            return 0

        if args.cmd == "render":
            req = RenderRequest(
                **_topology_fields(args),
                deployment=args.deployment,
                account=args.account,
                region=args.region,
                remote_store=args.remote_store,
                remote_store_bucket=args.remote_store_bucket,
                additional_config=_read_optional(args.additional_config_file),
                additional_dashboards_config=_read_optional(args.additional_dashboards_config_file),
            )
            bundle = render_from_request(req)
            written = []
            for role, rendered in bundle.configs.items():
                path = os.path.join(args.out_dir, config_file_name(role))
                write_rendered(path, rendered.text)
                written.append(path)
            if bundle.dashboards_config is not None:
                path = os.path.join(args.out_dir, "dashboards.yml")
                write_rendered(path, bundle.dashboards_config)
                written.append(path)
            _print({"plan": bundle.plan.to_dict(), "written": written})
            return 0

        if args.cmd == "jvm-options":
            with open(args.file, encoding="utf-8") as fh:
                base = fh.read()
            heap = None
            if args.auto_heap:
                total = args.total_memory_gib if args.total_memory_gib is not None else node_total_memory_gib()
                heap = heap_size_gb(total)
            write_rendered(args.file, render_jvm_options(base, args.sys_props, heap))
            _print({"file": args.file, "heap_gb": heap})
            return 0
    except ConfigError as e:
        _print(e.to_dict())
        return 1
    except ValidationError as e:
        _print({"error": "ValidationError", "message": str(e)})
        return 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
