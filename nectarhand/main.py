"""
NectarHand Main Simulation Runner
=================================
Entry point for playing episodes of either agent.

Provides:
- CLI interface for running random or idle baselines
- Logging setup shared by every subsystem
- Config loading, dumping and a printed summary
- Per-episode statistics, optionally written as JSON
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
from tqdm import tqdm

from .config import (
    AgentKind, SimulationConfig, config_to_dict, create_flight_config,
    create_gameplay_config, create_hand_config, create_small_test_config,
    load_config, save_config
)
from .contracts import Policy, SpawnExhaustedError
from .environment import make_env
from .heuristics import IdlePolicy, RandomPolicy

logger = logging.getLogger("Runner")

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: str = "INFO", log_file: Optional[str] = None):
    """Configure root logging with a console handler and an optional file handler"""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def create_scenario_config(agent: str = "flight", scenario: str = "standard") -> SimulationConfig:
    """
    Create configuration for a named scenario.

    Args:
        agent: "flight" or "hand"
        scenario: One of "standard", "small", "gameplay"

    Returns:
        SimulationConfig for the scenario
    """
    kind = AgentKind(agent)
    if scenario == "small":
        return create_small_test_config(kind)
    if scenario == "gameplay":
        return create_gameplay_config(kind)
    if kind == AgentKind.HAND:
        return create_hand_config()
    return create_flight_config()


def make_policy(name: str, action_size: int, rng: np.random.Generator) -> Policy:
    if name == "random":
        return RandomPolicy(action_size, rng)
    if name == "idle":
        return IdlePolicy(action_size)
    raise ValueError(f"Unknown policy: {name}")


def run_simulation(
    config: Optional[SimulationConfig] = None,
    n_episodes: int = 5,
    max_steps: int = 1000,
    policy: str = "random",
    seed: Optional[int] = None,
    progress: bool = True
) -> Dict[str, Any]:
    """
    Play episodes with a baseline policy.

    Args:
        config: Simulation configuration
        n_episodes: Number of episodes to play
        max_steps: Decision steps after which an episode is cut short
        policy: "random" or "idle"
        seed: Random seed for the world and the policy
        progress: Show a tqdm progress bar

    Returns:
        Results dictionary with one summary per episode
    """
    if config is None:
        config = create_flight_config()
    if seed is not None:
        config.seed = seed

    env = make_env(config)
    actor = make_policy(policy, env.action_space.shape[0], np.random.default_rng(config.seed))

    results = {
        "agent": config.agent_kind.value,
        "scenario": config.scenario_name,
        "policy": policy,
        "episodes": [],
    }

    observation, info = env.reset(seed=config.seed)
    for episode in tqdm(range(n_episodes), desc="Episodes", disable=not progress):
        if episode > 0:
            observation, info = env.reset()

        episode_reward = 0.0
        for _ in range(max_steps):
            action = actor.act(observation)
            observation, reward, terminated, truncated, info = env.step(action)
            episode_reward += reward
            if terminated or truncated:
                break

        info["episode_reward"] = episode_reward
        results["episodes"].append(info)
        logger.info(f"Episode {episode + 1}/{n_episodes}: reward={episode_reward:.3f}, "
                    f"end={info['end_reason']}, steps={info['decision_steps']}")

    rewards = [summary["episode_reward"] for summary in results["episodes"]]
    results["mean_reward"] = float(np.mean(rewards)) if rewards else 0.0
    results["total_reward"] = float(np.sum(rewards))

    env.close()
    return results


def print_config_summary(config: SimulationConfig):
    """Print configuration summary"""
    print("\n" + "="*60)
    print("NectarHand Configuration Summary")
    print("="*60)
    print(f"Scenario: {config.scenario_name}")
    print(f"Agent: {config.agent_kind.value} (training mode: {config.training_mode})")
    print(f"Time step: {config.physics.fixed_delta_time}s x {config.physics.decision_period} per decision")
    print(f"Arena diameter: {config.arena.diameter}")
    print()
    if config.agent_kind == AgentKind.FLIGHT:
        print("Flight settings:")
        print(f"  - Plants: {config.arena.n_plants}")
        print(f"  - Move force: {config.flight.move_force}")
        print(f"  - Max pitch: {config.flight.max_pitch_angle}")
        print(f"  - Nectar goal: {config.episode.nectar_goal}")
    else:
        print("Hand settings:")
        print(f"  - Joints: {config.hand.n_joints}")
        print(f"  - Max joint angle: {config.hand.max_joint_angle}")
        print(f"  - Grab distance: {config.hand.grab_distance}")
    print()
    print("Episode settings:")
    print(f"  - Max episode time: {config.episode.max_episode_time}")
    print(f"  - Out of bounds distance: {config.episode.out_of_bounds_distance}")
    print(f"  - Spawn exhaustion policy: {config.spawn.exhaustion_policy.value}")
    print("="*60 + "\n")


def main(argv: Optional[List[str]] = None):
    """CLI entry point"""
    parser = argparse.ArgumentParser(
        description="NectarHand Embodied Agent Simulation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Quick flyer run with random actions
  python -m nectarhand.main --agent flight --scenario small

  # Hand baseline, three episodes, results to JSON
  python -m nectarhand.main --agent hand --episodes 3 --output results/hand.json

  # Dump the effective config, edit it, and run it
  python -m nectarhand.main --dump-config configs/flight.json
  python -m nectarhand.main --config configs/flight.json
        """
    )

    parser.add_argument("--agent", choices=["flight", "hand"], default="flight", help="Agent variant")
    parser.add_argument(
        "--scenario",
        choices=["standard", "small", "gameplay"],
        default="standard",
        help="Scenario preset"
    )
    parser.add_argument("--config", type=str, help="Load configuration from JSON")
    parser.add_argument("--dump-config", type=str, help="Write the effective configuration and exit")

    parser.add_argument("--episodes", type=int, default=5, help="Number of episodes")
    parser.add_argument("--max-steps", type=int, default=1000, help="Decision steps per episode")
    parser.add_argument("--policy", choices=["random", "idle"], default="random", help="Baseline policy")
    parser.add_argument("--seed", type=int, help="Random seed")
    parser.add_argument("--output", type=str, help="Output path for results")

    parser.add_argument("--log-level", type=str, help="Logging level (DEBUG, INFO, ...)")
    parser.add_argument("--log-file", type=str, help="Also log to this file")
    parser.add_argument("--no-progress", action="store_true", help="Hide the progress bar")

    args = parser.parse_args(argv)

    # Create config
    if args.config:
        config = load_config(args.config)
    else:
        config = create_scenario_config(args.agent, args.scenario)

    # Apply overrides
    if args.seed is not None:
        config.seed = args.seed
    if args.log_level:
        config.log_level = args.log_level.upper()
    if args.log_file:
        config.log_file = args.log_file

    setup_logging(config.log_level, config.log_file)

    if args.dump_config:
        path = save_config(config, args.dump_config)
        print(f"Saved configuration to {path}")
        return 0

    print_config_summary(config)

    print("Running simulation...")
    try:
        results = run_simulation(
            config=config,
            n_episodes=args.episodes,
            max_steps=args.max_steps,
            policy=args.policy,
            progress=not args.no_progress,
        )
    except SpawnExhaustedError as e:
        logger.error(f"Simulation aborted: {e}")
        return 1

    print(f"\nSimulation complete!")
    print(f"Episodes: {len(results['episodes'])}")
    print(f"Mean reward: {results['mean_reward']:.3f}")
    for summary in results["episodes"]:
        print(f"  - Episode {summary['episode']}: {summary['end_reason']} "
              f"reward={summary['episode_reward']:.3f}")

    if args.output:
        results["config"] = config_to_dict(config)
        output = Path(args.output)
        output.parent.mkdir(parents=True, exist_ok=True)
        with open(output, "w") as f:
            json.dump(results, f, indent=2, default=float)
        print(f"Saved results to {output}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
