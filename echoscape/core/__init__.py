"""
EchoScape Core
設定・ログ・例外・依存性注入
"""
