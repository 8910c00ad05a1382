# SQL schema for QuizLadder database

SCHEMA_VERSION = 4

SCHEMA_SQL = """
-- Operator-tunable runtime settings (single row)
CREATE TABLE IF NOT EXISTS app_config (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    referral_bonus_xp INTEGER NOT NULL DEFAULT 50,
    lifelines_per_quiz INTEGER NOT NULL DEFAULT 3,
    reel_watch_threshold_seconds INTEGER NOT NULL DEFAULT 5,
    reels_prefetch_count INTEGER NOT NULL DEFAULT 3,
    updated_at TEXT
);

-- Online users display counter (single row)
CREATE TABLE IF NOT EXISTS online_users_config (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    mode TEXT NOT NULL DEFAULT 'fake' CHECK (mode IN ('fake', 'actual')),
    online_count_min INTEGER NOT NULL DEFAULT 100,
    online_count_max INTEGER NOT NULL DEFAULT 500,
    current_online_count INTEGER NOT NULL DEFAULT 250,
    update_interval_minutes INTEGER NOT NULL DEFAULT 5,
    active_minutes_threshold INTEGER NOT NULL DEFAULT 5,
    last_updated_at TEXT
);

-- User profiles (identity key is the phone number)
CREATE TABLE IF NOT EXISTS users_profile (
    phone TEXT PRIMARY KEY,
    name TEXT,
    district TEXT,
    state TEXT,
    medium TEXT NOT NULL DEFAULT 'english' CHECK (medium IN ('hindi', 'english')),
    referral_code TEXT UNIQUE NOT NULL CHECK (length(referral_code) = 5),
    referred_by TEXT,
    profile_image_url TEXT,
    date_joined TEXT NOT NULL,
    xp_total INTEGER NOT NULL DEFAULT 0 CHECK (xp_total >= 0),
    current_level INTEGER NOT NULL DEFAULT 1 CHECK (current_level >= 1 AND current_level <= 100),
    total_ads_watched INTEGER NOT NULL DEFAULT 0,
    videos_watched INTEGER NOT NULL DEFAULT 0,
    last_active_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- Referrals (one per referee, ever)
CREATE TABLE IF NOT EXISTS referral_tracking (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    referrer_phone TEXT NOT NULL,
    referee_phone TEXT NOT NULL UNIQUE,
    referral_code TEXT NOT NULL,
    xp_granted INTEGER NOT NULL DEFAULT 50,
    status TEXT NOT NULL DEFAULT 'active',
    referral_date TEXT NOT NULL,
    CHECK (referrer_phone != referee_phone),
    FOREIGN KEY (referrer_phone) REFERENCES users_profile (phone) ON DELETE CASCADE,
    FOREIGN KEY (referee_phone) REFERENCES users_profile (phone) ON DELETE CASCADE
);

-- Question catalog (read-only for this service)
CREATE TABLE IF NOT EXISTS questions (
    sl INTEGER PRIMARY KEY AUTOINCREMENT,
    level INTEGER NOT NULL CHECK (level >= 1 AND level <= 100),
    question_order INTEGER NOT NULL,
    question_text TEXT,
    question_image_url TEXT,
    option_1 TEXT NOT NULL,
    option_2 TEXT NOT NULL,
    option_3 TEXT NOT NULL,
    option_4 TEXT NOT NULL,
    explanation_text TEXT,
    explanation_url TEXT,
    subject TEXT,
    topic TEXT,
    medium TEXT NOT NULL DEFAULT 'both' CHECK (medium IN ('hindi', 'english', 'both')),
    UNIQUE (level, question_order, medium)
);

-- One row per attempt at a level
CREATE TABLE IF NOT EXISTS level_attempts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    phone TEXT NOT NULL,
    level INTEGER NOT NULL CHECK (level >= 1 AND level <= 100),
    attempt_date TEXT NOT NULL,
    questions_attempted INTEGER NOT NULL DEFAULT 0 CHECK (questions_attempted >= 0 AND questions_attempted <= 10),
    correct_answers INTEGER NOT NULL DEFAULT 0 CHECK (correct_answers >= 0 AND correct_answers <= questions_attempted),
    accuracy_percentage REAL NOT NULL DEFAULT 0 CHECK (accuracy_percentage >= 0 AND accuracy_percentage <= 100),
    xp_earned_base INTEGER NOT NULL DEFAULT 0,
    xp_earned_final INTEGER NOT NULL DEFAULT 0,
    video_watched INTEGER NOT NULL DEFAULT 0,
    is_first_attempt INTEGER NOT NULL DEFAULT 1,
    completion_status TEXT NOT NULL DEFAULT 'in_progress' CHECK (completion_status IN ('in_progress', 'completed', 'abandoned')),
    lifelines_remaining INTEGER NOT NULL DEFAULT 3 CHECK (lifelines_remaining >= 0 AND lifelines_remaining <= 3),
    lifelines_used INTEGER NOT NULL DEFAULT 0,
    lifeline_videos_watched INTEGER NOT NULL DEFAULT 0,
    question_medium TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    FOREIGN KEY (phone) REFERENCES users_profile (phone) ON DELETE CASCADE
);

-- Immutable answer log
CREATE TABLE IF NOT EXISTS question_responses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    attempt_id INTEGER NOT NULL,
    phone TEXT NOT NULL,
    question_id INTEGER NOT NULL,
    level INTEGER NOT NULL,
    user_answer INTEGER NOT NULL CHECK (user_answer >= 1 AND user_answer <= 4),
    is_correct INTEGER NOT NULL,
    time_taken_seconds INTEGER CHECK (time_taken_seconds >= 0 AND time_taken_seconds <= 120),
    answered_at TEXT NOT NULL,
    UNIQUE (attempt_id, question_id),
    FOREIGN KEY (attempt_id) REFERENCES level_attempts (id) ON DELETE CASCADE,
    FOREIGN KEY (phone) REFERENCES users_profile (phone) ON DELETE CASCADE,
    FOREIGN KEY (question_id) REFERENCES questions (sl) ON DELETE CASCADE
);

-- Rolling per-day XP aggregate
CREATE TABLE IF NOT EXISTS daily_xp_summary (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    phone TEXT NOT NULL,
    date TEXT NOT NULL,
    total_xp_today INTEGER NOT NULL DEFAULT 0,
    levels_completed_today INTEGER NOT NULL DEFAULT 0,
    questions_attempted_today INTEGER NOT NULL DEFAULT 0,
    videos_watched_today INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (phone, date),
    FOREIGN KEY (phone) REFERENCES users_profile (phone) ON DELETE CASCADE
);

-- Streaks (one row per user)
CREATE TABLE IF NOT EXISTS streak_tracking (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    phone TEXT NOT NULL UNIQUE,
    current_streak INTEGER NOT NULL DEFAULT 0,
    longest_streak INTEGER NOT NULL DEFAULT 0,
    last_activity_date TEXT,
    updated_at TEXT,
    FOREIGN KEY (phone) REFERENCES users_profile (phone) ON DELETE CASCADE
);

-- Promotional video catalog (read-only for this service)
CREATE TABLE IF NOT EXISTS promotional_videos (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    level INTEGER NOT NULL,
    video_name TEXT NOT NULL,
    video_url TEXT NOT NULL,
    duration_seconds INTEGER NOT NULL CHECK (duration_seconds > 0),
    category TEXT DEFAULT 'promotional',
    description TEXT,
    is_active INTEGER NOT NULL DEFAULT 1
);

-- Bonus video log
CREATE TABLE IF NOT EXISTS video_watch_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    phone TEXT NOT NULL,
    attempt_id INTEGER NOT NULL,
    level INTEGER NOT NULL,
    video_id INTEGER,
    video_url TEXT NOT NULL,
    watch_duration_seconds INTEGER,
    xp_bonus_granted INTEGER NOT NULL DEFAULT 0,
    watch_completed_at TEXT NOT NULL,
    FOREIGN KEY (phone) REFERENCES users_profile (phone) ON DELETE CASCADE,
    FOREIGN KEY (attempt_id) REFERENCES level_attempts (id) ON DELETE CASCADE
);

-- Lifeline restore log
CREATE TABLE IF NOT EXISTS lifeline_videos_watched (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    phone TEXT NOT NULL,
    attempt_id INTEGER NOT NULL,
    level INTEGER NOT NULL,
    video_id INTEGER,
    video_url TEXT NOT NULL,
    watch_duration_seconds INTEGER,
    lifelines_restored INTEGER NOT NULL,
    watch_completed_at TEXT NOT NULL,
    FOREIGN KEY (phone) REFERENCES users_profile (phone) ON DELETE CASCADE,
    FOREIGN KEY (attempt_id) REFERENCES level_attempts (id) ON DELETE CASCADE
);

-- Reels (short videos)
CREATE TABLE IF NOT EXISTS reels (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT,
    description TEXT,
    video_url TEXT NOT NULL,
    thumbnail_url TEXT,
    duration_seconds INTEGER NOT NULL DEFAULT 0,
    category TEXT DEFAULT 'education',
    tags TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    total_views INTEGER NOT NULL DEFAULT 0,
    total_completions INTEGER NOT NULL DEFAULT 0,
    total_hearts INTEGER NOT NULL DEFAULT 0 CHECK (total_hearts >= 0),
    total_watch_time_seconds INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Per-user reel progress
CREATE TABLE IF NOT EXISTS user_reel_progress (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    phone TEXT NOT NULL,
    reel_id INTEGER NOT NULL,
    status TEXT NOT NULL DEFAULT 'started' CHECK (status IN ('started', 'watched')),
    watch_duration_seconds INTEGER NOT NULL DEFAULT 0,
    is_hearted INTEGER NOT NULL DEFAULT 0,
    started_at TEXT NOT NULL,
    watched_at TEXT,
    updated_at TEXT NOT NULL,
    UNIQUE (phone, reel_id),
    FOREIGN KEY (phone) REFERENCES users_profile (phone) ON DELETE CASCADE,
    FOREIGN KEY (reel_id) REFERENCES reels (id) ON DELETE CASCADE
);
"""

# Indexes for performance
INDEXES_SQL = """
CREATE INDEX IF NOT EXISTS idx_users_xp_total ON users_profile (xp_total DESC);
CREATE INDEX IF NOT EXISTS idx_users_last_active ON users_profile (last_active_at);
CREATE INDEX IF NOT EXISTS idx_referral_referrer ON referral_tracking (referrer_phone);
CREATE INDEX IF NOT EXISTS idx_questions_level_medium ON questions (level, medium);
CREATE INDEX IF NOT EXISTS idx_attempts_phone_level ON level_attempts (phone, level);
CREATE INDEX IF NOT EXISTS idx_attempts_status ON level_attempts (phone, completion_status);
CREATE INDEX IF NOT EXISTS idx_responses_attempt ON question_responses (attempt_id);
CREATE INDEX IF NOT EXISTS idx_daily_xp_date_xp ON daily_xp_summary (date, total_xp_today DESC);
CREATE INDEX IF NOT EXISTS idx_videos_level ON promotional_videos (level, is_active);
CREATE INDEX IF NOT EXISTS idx_video_log_attempt ON video_watch_log (attempt_id);
CREATE INDEX IF NOT EXISTS idx_lifeline_videos_attempt ON lifeline_videos_watched (attempt_id);
CREATE INDEX IF NOT EXISTS idx_reels_active_id ON reels (is_active, id DESC);
CREATE INDEX IF NOT EXISTS idx_user_reel_phone_status ON user_reel_progress (phone, status);
CREATE INDEX IF NOT EXISTS idx_user_reel_hearted ON user_reel_progress (reel_id, is_hearted);
"""

SEED_SQL = """
INSERT OR IGNORE INTO app_config (id) VALUES (1);
INSERT OR IGNORE INTO online_users_config (id) VALUES (1);
"""
