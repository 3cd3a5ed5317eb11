#!/usr/bin/env python3
"""交互式生成 .env 配置文件

使用方式：
    python scripts/setup_env.py            # 逐项询问
    python scripts/setup_env.py --defaults # 全部使用默认值，不询问

键名与 config/settings.py 中的 Settings 字段一一对应。
"""
import argparse
import os
import sys

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from business.scheduler import parse_time_of_day  # noqa: E402

ENV_FILE = os.path.join(PROJECT_ROOT, ".env")


def _positive_int(value: str) -> str:
    if not value.isdigit() or int(value) <= 0:
        raise ValueError("需要正整数")
    return value


def _time_of_day(value: str) -> str:
    hour, minute = parse_time_of_day(value)
    return f"{hour:02d}:{minute:02d}"


# 分组 -> [(env_key, 描述, 默认值, 校验函数)]
SECTIONS = [
    ("数据库", [
        ("DATABASE_URL", "数据库连接地址", "sqlite:///data/bracelet.db", None),
    ]),
    ("订单/转账识别（MiniMax，Anthropic 兼容接口）", [
        ("MINIMAX_API_KEY", "API Key（可选，留空则不启用识别）", "", None),
        ("MINIMAX_MODEL", "模型名称", "MiniMax-M2.5", None),
        ("MINIMAX_BASE_URL", "接口地址（国际版用 https://api.minimax.io/anthropic）",
         "https://api.minimaxi.com/anthropic", None),
    ]),
    ("业务参数", [
        ("ORDER_NO_PREFIX", "订单号前缀", "ORD", None),
        ("PAGE_SIZE", "列表每页条数", "50", _positive_int),
        ("UPCOMING_WINDOW_DAYS", "临近交付窗口（天）", "7", _positive_int),
        ("DELAY_ALERT_TIME", "每日延期预警时间 HH:MM", "09:00", _time_of_day),
    ]),
    ("日志", [
        ("LOG_LEVEL", "日志级别", "INFO", None),
    ]),
]


def ask(key: str, desc: str, default: str, validate) -> str:
    """询问一个配置项，校验失败时重新输入"""
    hint = f" (默认: {default})" if default else ""
    print(f"📝 {desc}")
    while True:
        value = input(f"  {key}{hint}: ").strip() or default
        if validate is None or not value:
            return value
        try:
            return validate(value)
        except ValueError as e:
            print(f"  ❌ {key} 无效：{e}")


def build_env(use_defaults: bool = False) -> str:
    """生成 .env 文件内容"""
    lines = ["# 手绳代工台账 配置文件", "# 由 scripts/setup_env.py 生成"]
    for title, items in SECTIONS:
        lines.append("")
        lines.append(f"# === {title} ===")
        if not use_defaults:
            print(f"--- {title} ---")
        for key, desc, default, validate in items:
            value = default if use_defaults else ask(key, desc, default, validate)
            lines.append(f"{key}={value}")
        if not use_defaults:
            print()
    return "\n".join(lines) + "\n"


def main():
    parser = argparse.ArgumentParser(description="生成 .env 配置文件")
    parser.add_argument("--defaults", action="store_true", help="全部使用默认值")
    parser.add_argument("--force", action="store_true", help="覆盖已有的 .env")
    args = parser.parse_args()

    print("=" * 60)
    print("  手绳代工台账 配置向导")
    print("=" * 60)

    if os.path.exists(ENV_FILE) and not args.force:
        choice = input(f"⚠️  已存在 {ENV_FILE}，是否覆盖？(y/N): ").strip().lower()
        if choice != "y":
            print("已取消。")
            return

    content = build_env(use_defaults=args.defaults)
    with open(ENV_FILE, "w", encoding="utf-8") as f:
        f.write(content)

    print(f"✅ 配置文件已生成: {ENV_FILE}")
    print("  初始化数据库：python scripts/init_db.py")
    print("  查看看板：    python app.py")
    print("  常驻预警：    python app.py --serve")


if __name__ == "__main__":
    main()
