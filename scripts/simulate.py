#!/usr/bin/env python3
"""
对战模拟脚本

Usage:
    python scripts/simulate.py --tiers easy medium hard expert --games 20
    python scripts/simulate.py --tiers hard expert --games 50 --learn --tactics tactics.json --knowledge knowledge.json
    python scripts/simulate.py --evaluate expert --opponent medium --games 100
    python scripts/simulate.py --tiers hard expert --config configs/tuned.json
"""
import argparse
import asyncio
import logging
import random
import sys
from pathlib import Path
import json

# 添加项目根目录到路径
ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))

from ai import DecisionEngine, EngineConfig, JsonFileKnowledgeStore, JsonFileTacticStore
from env import DurakEnv
from evaluation import Arena, EngineAgent, Evaluator, ParallelArena
from training import LearningConfig, TacticLearner

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)


def parse_args():
    parser = argparse.ArgumentParser(description="AlphaDurak Simulation")

    # 模式
    parser.add_argument("--evaluate", type=str, help="Evaluate one tier against the env opponent")
    parser.add_argument("--opponent", type=str, default="medium", help="Env opponent tier")

    # 对战参数
    parser.add_argument("--tiers", nargs="+", default=["easy", "medium", "hard", "expert"])
    parser.add_argument("--games", type=int, default=20, help="Games per seating")
    parser.add_argument("--max-moves", type=int, default=1000, help="Move cap per match")
    parser.add_argument("--workers", type=int, default=1, help="Parallel workers")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")

    # 外部数据
    parser.add_argument("--tactics", type=str, help="Tactic store JSON file")
    parser.add_argument("--knowledge", type=str, help="Knowledge store JSON file")
    parser.add_argument("--learn", action="store_true", help="Learn tactics after each match")

    # 其他
    parser.add_argument("--config", type=str, help="JSON config with \"engine\" and \"learning\" sections")
    parser.add_argument("--output", type=str, help="Output file for results")
    parser.add_argument("--verbose", action="store_true", help="Verbose output")

    return parser.parse_args()


def load_config(args):
    """读取 --config，返回 (EngineConfig, LearningConfig)"""
    if not args.config:
        return EngineConfig(), LearningConfig()
    with open(args.config) as f:
        data = json.load(f)
    return (
        EngineConfig.from_dict(data.get("engine", {})),
        LearningConfig.from_dict(data.get("learning", {})),
    )


def build_stores(args):
    tactic_store = JsonFileTacticStore(args.tactics) if args.tactics else None
    knowledge_store = JsonFileKnowledgeStore(args.knowledge) if args.knowledge else None
    return tactic_store, knowledge_store


async def build_agents(args, rng, tactic_store, knowledge_store, engine_config):
    agents = []
    for tier in args.tiers:
        engine = await DecisionEngine.from_stores(
            tier,
            tactic_store=tactic_store,
            knowledge_store=knowledge_store,
            config=engine_config,
            rng=rng,
        )
        agents.append(EngineAgent(engine))
    return agents


async def learn_from_matches(matches, tactic_store, knowledge_store, learning_config):
    """以每局的 0 号座位为学习方"""
    learner = TacticLearner(tactic_store, knowledge_store, learning_config)
    for match in matches:
        await learner.learn_from_match(match, player=0)


def run_tournament(args):
    """运行循环赛"""
    rng = random.Random(args.seed)
    engine_config, learning_config = load_config(args)
    tactic_store, knowledge_store = build_stores(args)
    agents = asyncio.run(build_agents(args, rng, tactic_store, knowledge_store, engine_config))

    logger.info(f"Running round robin: {', '.join(a.name for a in agents)}")

    record_history = args.learn and knowledge_store is not None
    if args.workers > 1:
        arena = ParallelArena(args.max_moves, record_history, rng, n_workers=args.workers)
    else:
        arena = Arena(args.max_moves, record_history, rng)
    result = arena.round_robin(agents, games_per_match=args.games)

    logger.info("=" * 50)
    logger.info("Tournament Results")
    logger.info("=" * 50)

    ranking = result.get_ranking()
    for i, (name, win_rate) in enumerate(ranking):
        stats = result.standings[name]
        logger.info(
            f"{i+1}. {name}: {win_rate:.2%} "
            f"(losses {stats.get('losses', 0):.0f}, draws {stats.get('draws', 0):.0f}, "
            f"truncated {stats.get('truncated', 0):.0f})"
        )

    logger.info("=" * 50)

    if args.learn:
        if tactic_store is None:
            logger.warning("--learn needs --tactics; skipping learning")
        else:
            asyncio.run(learn_from_matches(result.matches, tactic_store, knowledge_store, learning_config))

    if args.output:
        with open(args.output, "w") as f:
            json.dump({
                "rankings": ranking,
                "standings": result.standings,
                "total_games": result.total_games,
            }, f, indent=2)
        logger.info(f"Results saved to {args.output}")

    return result


def evaluate_tier(args):
    """在环境中评估一个难度档位"""
    rng = random.Random(args.seed)
    engine_config, _ = load_config(args)
    tactic_store, knowledge_store = build_stores(args)
    engine = asyncio.run(DecisionEngine.from_stores(
        args.evaluate,
        tactic_store=tactic_store,
        knowledge_store=knowledge_store,
        config=engine_config,
        rng=rng,
    ))

    logger.info(f"Evaluating {args.evaluate} against {args.opponent}")

    evaluator = Evaluator(lambda: DurakEnv(
        opponent=args.opponent,
        max_steps=args.max_moves,
        seed=args.seed,
        engine_config=engine_config,
    ))
    result = evaluator.evaluate(EngineAgent(engine), n_games=args.games, verbose=args.verbose)

    logger.info("=" * 50)
    logger.info(f"Win Rate: {result.win_rate:.2%}")
    logger.info(f"Loss Rate: {result.loss_rate:.2%}")
    logger.info(f"Draw Rate: {result.draw_rate:.2%}")
    logger.info(f"Average Reward: {result.avg_reward:.2f}")
    logger.info(f"Average Length: {result.avg_length:.1f}")
    logger.info(f"Truncated: {result.truncated}")
    logger.info("=" * 50)

    if args.output:
        with open(args.output, "w") as f:
            json.dump({
                "win_rate": result.win_rate,
                "loss_rate": result.loss_rate,
                "draw_rate": result.draw_rate,
                "avg_reward": result.avg_reward,
                "avg_length": result.avg_length,
                "games_played": result.games_played,
                "truncated": result.truncated,
            }, f, indent=2)

    return result


def main():
    args = parse_args()

    if args.evaluate:
        evaluate_tier(args)
    elif len(args.tiers) >= 2:
        run_tournament(args)
    else:
        logger.error("Please specify --evaluate <tier> or at least two --tiers")
        sys.exit(1)


if __name__ == "__main__":
    main()
