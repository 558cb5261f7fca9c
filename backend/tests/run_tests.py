#!/usr/bin/env python3
"""
IPFS Proxy 测试运行脚本

使用方法：
    python tests/run_tests.py              # 运行所有测试
    python tests/run_tests.py --engine     # 只运行引擎测试 (不经过 HTTP 路由)
    python tests/run_tests.py --routes     # 只运行路由测试
    python tests/run_tests.py -k image     # 只运行包含 "image" 的测试

快速开始：
    pip install -e ".[test]"
    cd backend
    python tests/run_tests.py
"""

import os
import subprocess
import sys
from pathlib import Path

# 切换到 backend 目录
backend_dir = Path(__file__).parent.parent
os.chdir(backend_dir)

ENGINE_TESTS = [
    "tests/test_identifier.py",
    "tests/test_params.py",
    "tests/test_candidates.py",
    "tests/test_resolver.py",
    "tests/test_relay.py",
    "tests/test_config.py",
    "tests/test_url_builder.py",
    "tests/test_app.py",
]
ROUTE_TESTS = ["tests/test_routes.py"]


def main():
    """运行测试"""
    args = sys.argv[1:]

    targets = ["tests/"]
    if "--engine" in args:
        args.remove("--engine")
        targets = ENGINE_TESTS
    elif "--routes" in args:
        args.remove("--routes")
        targets = ROUTE_TESTS

    cmd = [sys.executable, "-m", "pytest", *targets]
    if not any(arg.startswith("-v") for arg in args):
        cmd.append("-v")
    cmd.extend(args)

    print(f"\n{'='*60}")
    print("IPFS Proxy 测试")
    print(f"{'='*60}")
    print(f"运行命令: {' '.join(cmd)}")
    print(f"{'='*60}\n")

    result = subprocess.run(cmd)
    sys.exit(result.returncode)


if __name__ == "__main__":
    main()
