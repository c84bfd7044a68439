"""
Training configuration for the invaders environment
Reward shaping variants and algorithm hyperparameters
"""

# Gameplay parameters (see game.invaders.session.GameSettings)
GAME_CONFIG = {
    "width": 640,
    "height": 480,
    "rows": 5,
    "cols": 11,
    "lives": 3,
    "barricades": 4,
    "enemy_fire_chance": 1 / 500,
    "shoot_cooldown": 20,
}

# Environment parameters
ENV_CONFIG = {
    # "render_mode": None,  # Don't render during training
    "max_steps": 20_000,
    "k_missiles": 4,
    "game_config": GAME_CONFIG,
}

# ==============================================================================
# REWARD SHAPING CONFIGURATIONS
# ==============================================================================

# BASELINE: score-driven with mild penalties
REWARD_CONFIG_BASELINE = {
    "name": "baseline",
    "description": "Score-driven reward with mild penalties",
    "R_SCORE": 0.01,     # Per score point
    "R_WAVE": 2.0,       # Wave cleared
    "R_LIFE": 1.0,       # Penalty per life lost
    "R_SHOT": 0.005,     # Penalty per shot (encourage aiming)
    "R_TIME": 0.0005,    # Small time penalty
    "R_DEATH": 5.0,      # Game over penalty
}

# SURVIVAL: dodge first, shoot second
REWARD_CONFIG_SURVIVAL = {
    "name": "survival",
    "description": "Prioritize survival - heavy life/death penalties",
    "R_SCORE": 0.005,
    "R_WAVE": 1.0,
    "R_LIFE": 3.0,
    "R_SHOT": 0.005,
    "R_TIME": 0.0,
    "R_DEATH": 10.0,
}

# AGGRESSIVE: clear waves fast
REWARD_CONFIG_AGGRESSIVE = {
    "name": "aggressive",
    "description": "Prioritize kills and wave clears",
    "R_SCORE": 0.02,
    "R_WAVE": 5.0,
    "R_LIFE": 0.5,
    "R_SHOT": 0.0,
    "R_TIME": 0.001,
    "R_DEATH": 3.0,
}

REWARD_CONFIGS = {
    "baseline": REWARD_CONFIG_BASELINE,
    "survival": REWARD_CONFIG_SURVIVAL,
    "aggressive": REWARD_CONFIG_AGGRESSIVE,
}

# ==============================================================================
# ALGORITHM HYPERPARAMETERS
# ==============================================================================

PPO_CONFIG = {
    "policy": "MlpPolicy",
    "learning_rate": 3e-4,
    "n_steps": 2048,
    "batch_size": 256,
    "n_epochs": 10,
    "gamma": 0.99,
    "gae_lambda": 0.95,
    "clip_range": 0.2,
    "ent_coef": 0.01,
    "vf_coef": 0.5,
    "max_grad_norm": 0.5,
    "verbose": 1,
}

DQN_CONFIG = {
    "policy": "MlpPolicy",
    "learning_rate": 1e-4,
    "buffer_size": 100_000,
    "learning_starts": 1000,
    "batch_size": 128,
    "tau": 1.0,
    "gamma": 0.99,
    "train_freq": 4,
    "gradient_steps": 1,
    "target_update_interval": 1000,
    "exploration_fraction": 0.1,
    "exploration_initial_eps": 1.0,
    "exploration_final_eps": 0.05,
    "verbose": 1,
}

# ==============================================================================
# TRAINING SETTINGS
# ==============================================================================

TRAINING_CONFIG = {
    "total_timesteps": 1_000_000,
    "save_freq": 20_000,
    "eval_freq": 10_000,
    "log_dir": "./logs",
    "model_dir": "./models",
    "tensorboard_log": "./tensorboard_logs",
}


def get_reward_config(name: str) -> dict:
    """Reward weights by name, without the name/description keys"""
    if name not in REWARD_CONFIGS:
        raise ValueError(f"Unknown reward config: {name} (choose from {sorted(REWARD_CONFIGS)})")
    return {k: v for k, v in REWARD_CONFIGS[name].items() if k.startswith("R_")}
