# actgen
# 記録済みブラウザ操作から Playwright スクリプトを生成するコンパイラとランタイム支援ライブラリ

__version__ = "0.1.0"
