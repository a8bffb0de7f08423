# 文件名: colbert_infer/__main__.py

from colbert_infer.cli import main


if __name__ == '__main__':
    main()
