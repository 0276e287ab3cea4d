"""rubypack - Ruby buildpack 依赖二进制安装器"""

__version__ = "0.1.0"
