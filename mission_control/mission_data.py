"""
Mission Control Master Data
ミッション、難易度、ランク、フェーズ、報酬ゴールの定義ファイルです。
ここを編集すると組み込みミッションに反映されます。
(ユーザーの編集内容は override として別に保存されるため、ここで消えることはありません)
"""

# 組み込みミッション定義
# type: 'boolean' (達成/未達成) or 'partial' (目標値に対する進捗)
MISSIONS = [
    {'id': 'sahur', 'name': 'Sahur + Istighfar', 'description': 'Wake up for Sahur and recite Istighfar', 'icon': '🌙', 'type': 'boolean', 'base_xp': 30, 'category': 'ibadah'},
    {'id': 'fajr', 'name': 'Fajr Prayer', 'description': 'Perform Fajr prayer on time', 'icon': '🕌', 'type': 'boolean', 'base_xp': 50, 'category': 'prayer'},
    {'id': 'dhuhr', 'name': 'Dhuhr Prayer', 'description': 'Perform Dhuhr prayer on time', 'icon': '🕌', 'type': 'boolean', 'base_xp': 40, 'category': 'prayer'},
    {'id': 'asr', 'name': 'Asr Prayer', 'description': 'Perform Asr prayer on time', 'icon': '🕌', 'type': 'boolean', 'base_xp': 40, 'category': 'prayer'},
    {'id': 'maghrib', 'name': 'Maghrib Prayer & Iftar', 'description': 'Perform Maghrib prayer and break fast', 'icon': '🕌', 'type': 'boolean', 'base_xp': 50, 'category': 'prayer'},
    {'id': 'isha', 'name': 'Isha Prayer', 'description': 'Perform Isha prayer on time', 'icon': '🕌', 'type': 'boolean', 'base_xp': 40, 'category': 'prayer'},

    # --- partial (目標ページ数) ---
    {'id': 'tilawah', 'name': 'Tilawah Al-Quran', 'description': 'Daily Quran reading pages', 'icon': '📖', 'type': 'partial', 'base_xp': 100, 'max_stars': 3, 'default_target': 20, 'unit': 'pages', 'category': 'quran'},

    {'id': 'dzikir', 'name': 'Dzikir Pagi/Petang', 'description': 'Morning and evening remembrance', 'icon': '📿', 'type': 'boolean', 'base_xp': 30, 'category': 'ibadah'},
    {'id': 'tarawih', 'name': 'Tarawih Prayer', 'description': 'Perform Tarawih prayer (8-20 rakaat)', 'icon': '🌟', 'type': 'boolean', 'base_xp': 60, 'category': 'prayer'},
    {'id': 'sedekah', 'name': 'Sedekah / Charity', 'description': 'Give charity or perform acts of kindness', 'icon': '💝', 'type': 'boolean', 'base_xp': 40, 'category': 'amal'},
    {'id': 'tadarus', 'name': 'Tadarus / Study Circle', 'description': 'Join or conduct Islamic study', 'icon': '📚', 'type': 'boolean', 'base_xp': 35, 'category': 'quran'},
    {'id': 'dua', 'name': "Special Du'a", 'description': 'Make heartfelt supplications', 'icon': '🤲', 'type': 'boolean', 'base_xp': 25, 'category': 'ibadah'},
]

# 難易度 (XP倍率)
DIFFICULTY_LEVELS = {
    'cadet': {'label': 'Cadet', 'multiplier': 1.0, 'color': '#00BFFF'},
    'officer': {'label': 'Officer', 'multiplier': 1.5, 'color': '#8A2BE2'},
    'commander': {'label': 'Commander', 'multiplier': 2.0, 'color': '#FFD700'},
}

# ランク (累計XPの閾値)
RANKS = [
    {'min_stars': 0, 'name': 'Space Cadet', 'color': '#6B7280'},
    {'min_stars': 200, 'name': 'Junior Recruit', 'color': '#00BFFF'},
    {'min_stars': 500, 'name': 'Flight Officer', 'color': '#3B82F6'},
    {'min_stars': 1000, 'name': 'Chief Pilot', 'color': '#8A2BE2'},
    {'min_stars': 2000, 'name': 'Star Commander', 'color': '#FFD700'},
    {'min_stars': 4000, 'name': 'Galaxy Admiral', 'color': '#FF6347'},
    {'min_stars': 6000, 'name': 'Cosmic Legend', 'color': '#FF1493'},
]

# フェーズ (10日ごと)
PHASES = [
    {'id': 1, 'name': 'Rahmat', 'subtitle': 'Mercy', 'days': (1, 10), 'color': '#00BFFF'},
    {'id': 2, 'name': 'Maghfirah', 'subtitle': 'Forgiveness', 'days': (11, 20), 'color': '#8A2BE2'},
    {'id': 3, 'name': 'Itqun Minan Nar', 'subtitle': 'Protection from Fire', 'days': (21, 30), 'color': '#FFD700'},
]

AVATARS = [
    {'id': 'rocket', 'emoji': '🚀', 'color': '#8A2BE2'},
    {'id': 'star', 'emoji': '⭐', 'color': '#FFD700'},
    {'id': 'moon', 'emoji': '🌙', 'color': '#00BFFF'},
    {'id': 'planet', 'emoji': '🪐', 'color': '#FF6347'},
    {'id': 'astronaut', 'emoji': '👨‍🚀', 'color': '#3B82F6'},
    {'id': 'satellite', 'emoji': '🛸', 'color': '#22C55E'},
    {'id': 'comet', 'emoji': '☄️', 'color': '#F59E0B'},
    {'id': 'galaxy', 'emoji': '🌌', 'color': '#EC4899'},
]

# チーム全体の報酬ゴール (合計XP)
REWARD_GOALS = [
    {'id': 'pizza', 'name': 'Family Pizza Night', 'target': 5000, 'emoji': '🍕'},
    {'id': 'outing', 'name': 'Family Day Out', 'target': 10000, 'emoji': '🎡'},
    {'id': 'gift', 'name': 'Eid Special Gift', 'target': 15000, 'emoji': '🎁'},
    {'id': 'vacation', 'name': 'Family Vacation', 'target': 20000, 'emoji': '✈️'},
]

# 初回起動時のデフォルトメンバー
DEFAULT_PROFILE = {'id': 'abah', 'callsign': 'Abah', 'avatar': 'rocket', 'avatar_color': '#8A2BE2', 'difficulty': 'cadet'}
